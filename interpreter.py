"""
Scheme Interpreter - Functional Style
Evaluates expression trees against mutable lexical environments
"""

from typing import Dict, List, Optional

from parsing import SyntaxNode, SYMBOL, NUMBER, RATIONAL, STRING, BOOLEAN, LIST, create_parser
from semantics import PRIMITIVES, PRIMITIVE_ARITY, RESERVED_WORDS, analyze_syntax, arity_accepts, describe_arity
from environment import make_runtime_env, env_find, env_contains, env_extend, env_modify, env_define
from values import (
  PROCEDURE, TERMINATE,
  make_integer, make_rational, make_boolean, make_string, make_symbol,
  make_void, make_terminate, make_procedure, make_list, is_false, is_true,
)
from stdlib import apply_primitive
from utilities import (
  arity_error, undefined_variable_error, not_a_procedure_error, redefinition_error, quote_error,
)
from error_handling import SchemeRuntimeError


# ============================================================================
# QUOTATION
# ============================================================================

def is_dot(node: SyntaxNode) -> bool:
  return node.is_symbol and node.value == "."


def syntax_to_value(node: SyntaxNode) -> Dict:
  """Convert quoted syntax to a value without evaluating it"""
  if node.type == NUMBER:
    return make_integer(node.value)
  elif node.type == RATIONAL:
    return make_rational(*node.value)
  elif node.type == STRING:
    return make_string(node.value)
  elif node.type == BOOLEAN:
    return make_boolean(node.value)
  elif node.type == SYMBOL:
    return make_symbol(node.value)
  elif node.type == LIST:
    return quoted_list_to_value(node.children)
  raise quote_error(f"cannot quote syntax of type {node.type}")


def quoted_list_to_value(elements: List[SyntaxNode]) -> Dict:
  """Pair chain; a single interior '.' followed by one element makes a dotted tail"""
  dots = [i for i, element in enumerate(elements) if is_dot(element)]
  if not dots:
    return make_list([syntax_to_value(element) for element in elements])

  if len(dots) > 1:
    raise quote_error("more than one '.' in a quoted list")
  dot = dots[0]
  if dot == 0:
    raise quote_error("'.' cannot start a quoted list")
  if dot == len(elements) - 1:
    raise quote_error("'.' cannot end a quoted list")
  if dot != len(elements) - 2:
    raise quote_error("exactly one element must follow '.'")

  prefix = [syntax_to_value(element) for element in elements[:dot]]
  return make_list(prefix, syntax_to_value(elements[-1]))


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_ast(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Evaluate an expression node and return its value"""
  if debug:
    print(f"Evaluating: {ast_node['type']}")

  node_type = ast_node['type']
  handler = EVALUATORS.get(node_type)
  if handler is None:
    raise SchemeRuntimeError(f"Unknown expression node type: {node_type}")
  return handler(ast_node, env, debug)


def eval_fixnum(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  return make_integer(ast_node['value'])


def eval_rational(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  numerator, denominator = ast_node['value']
  return make_rational(numerator, denominator)


def eval_string(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  return make_string(ast_node['value'])


def eval_true(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  return make_boolean(True)


def eval_false(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  return make_boolean(False)


def eval_make_void(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  return make_void()


def eval_exit(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  return make_terminate()


def eval_var(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Variable lookup; a bare primitive name becomes a primitive procedure"""
  name = ast_node['value']
  value = env_find(env, name)
  if value is not None:
    return value
  if name in PRIMITIVES:
    return make_procedure(None, None, None, name, PRIMITIVES[name])
  raise undefined_variable_error(name)


def eval_operands(ast_node: Dict, env: Dict, debug: bool) -> List[Dict]:
  return [eval_ast(child, env, debug) for child in ast_node['children']]


def eval_primitive(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """UNARY / BINARY / VARIADIC operator nodes"""
  args = eval_operands(ast_node, env, debug)
  return apply_primitive(ast_node['value']['op'], args)


def eval_if(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  test, consequent, alternative = ast_node['children']
  if is_false(eval_ast(test, env, debug)):
    return eval_ast(alternative, env, debug)
  return eval_ast(consequent, env, debug)


def eval_cond(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  for clause in ast_node['value']:
    test_value = eval_ast(clause['test'], env, debug)
    if is_false(test_value):
      continue
    result = test_value
    for expr in clause['body']:
      result = eval_ast(expr, env, debug)
    return result
  return make_boolean(False)


def eval_lambda(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Closure over `env` itself, not a copy"""
  info = ast_node['value']
  return make_procedure(info['params'], ast_node['children'][0], env, info['name'])


def apply_procedure(proc: Dict, args: List[Dict], debug: bool = False) -> Dict:
  """Call a closure or primitive procedure with evaluated arguments"""
  if proc['type'] != PROCEDURE:
    raise not_a_procedure_error(proc)

  info = proc['value']
  if info['primitive'] is not None:
    arity = PRIMITIVE_ARITY[info['primitive']]
    if not arity_accepts(arity, len(args)):
      raise arity_error(info['name'], describe_arity(arity), len(args))
    return apply_primitive(info['primitive'], args)

  params = info['params']
  if len(args) != len(params):
    raise arity_error(info['name'] or "#<procedure>", len(params), len(args))

  # One fresh frame per call; the captured environment is never mutated
  call_env = env_extend(info['env'], dict(zip(params, args)))
  return eval_ast(info['body'], call_env, debug)


def eval_apply(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  operator_ast, *arg_asts = ast_node['children']
  proc = eval_ast(operator_ast, env, debug)
  if proc['type'] != PROCEDURE:
    raise not_a_procedure_error(proc)
  args = [eval_ast(arg, env, debug) for arg in arg_asts]
  return apply_procedure(proc, args, debug)


def eval_define(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Bind a placeholder first so the value expression can refer to the name"""
  name = ast_node['value']
  if name in PRIMITIVES or name in RESERVED_WORDS:
    raise redefinition_error(name)

  if not env_contains(env, name):
    env_define(env, name, make_void())
  value = eval_ast(ast_node['children'][0], env, debug)
  env_modify(env, name, value)
  return make_void()


def eval_let(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Inits are evaluated in the outer environment"""
  values = [(name, eval_ast(init, env, debug)) for name, init in ast_node['value']['bindings']]
  return eval_ast(ast_node['children'][0], env_extend(env, dict(values)), debug)


def eval_letrec(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  bindings = ast_node['value']['bindings']
  letrec_env = env_extend(env, {name: make_void() for name, _ in bindings})
  for name, init in bindings:
    env_define(letrec_env, name, eval_ast(init, letrec_env, debug))
  return eval_ast(ast_node['children'][0], letrec_env, debug)


def eval_set(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  name = ast_node['value']
  if not env_contains(env, name):
    raise undefined_variable_error(name)
  value = eval_ast(ast_node['children'][0], env, debug)
  env_modify(env, name, value)
  return make_void()


def eval_begin(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  result = make_void()
  for child in ast_node['children']:
    result = eval_ast(child, env, debug)
  return result


def eval_quote(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  return syntax_to_value(ast_node['value'])


def eval_and(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Stops at the first #f; otherwise the last operand's value"""
  result = make_boolean(True)
  for child in ast_node['children']:
    result = eval_ast(child, env, debug)
    if is_false(result):
      return make_boolean(False)
  return result


def eval_or(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Any non-false operand gives #t, not the operand itself"""
  for child in ast_node['children']:
    if is_true(eval_ast(child, env, debug)):
      return make_boolean(True)
  return make_boolean(False)


EVALUATORS = {
    "FIXNUM": eval_fixnum,
    "RATIONAL_NUM": eval_rational,
    "STRING": eval_string,
    "TRUE": eval_true,
    "FALSE": eval_false,
    "MAKE_VOID": eval_make_void,
    "EXIT": eval_exit,
    "VAR": eval_var,
    "UNARY": eval_primitive,
    "BINARY": eval_primitive,
    "VARIADIC": eval_primitive,
    "IF": eval_if,
    "COND": eval_cond,
    "LAMBDA": eval_lambda,
    "APPLY": eval_apply,
    "DEFINE": eval_define,
    "LET": eval_let,
    "LETREC": eval_letrec,
    "SET": eval_set,
    "BEGIN": eval_begin,
    "QUOTE": eval_quote,
    "AND": eval_and,
    "OR": eval_or,
}


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

def create_builtin_runtime_env() -> Dict:
  """Empty global frame; primitives are resolved by name on lookup"""
  return make_runtime_env()


def eval_program(ast_nodes: List[Dict], env: Optional[Dict] = None,
                 debug: bool = False) -> List[Dict]:
  """
  Evaluate top-level forms in order against one environment.
  Stops after a form that evaluates to Terminate.
  """
  if env is None:
    env = create_builtin_runtime_env()
  results = []
  for ast_node in ast_nodes:
    value = eval_ast(ast_node, env, debug)
    results.append(value)
    if value['type'] == TERMINATE:
      break
  return results


# ============================================================================
# INTERPRETER
# ============================================================================

class SchemeInterpreter:
  """Reader, analyzer and evaluator sharing one global environment"""

  def __init__(self, debug: bool = False):
    self.debug = debug
    self.parser = create_parser(debug)
    self.global_env = create_builtin_runtime_env()

  def analyze_syntax(self, node: SyntaxNode) -> Dict:
    return analyze_syntax(node, self.global_env, self.debug)

  def eval_syntax(self, node: SyntaxNode) -> Dict:
    """Analyze then evaluate one top-level form"""
    return eval_ast(self.analyze_syntax(node), self.global_env, self.debug)

  def run_source(self, text: str, filename: str = "<input>") -> List[Dict]:
    """Read, analyze and evaluate every form in `text`.

    Each form is analyzed only after the previous one ran, so definitions
    made earlier in the same source are visible to the analyzer.
    """
    results = []
    for node in self.parser.parse_string(text, filename):
      value = self.eval_syntax(node)
      results.append(value)
      if value['type'] == TERMINATE:
        break
    return results

  def eval_string(self, text: str) -> Dict:
    """Value of the last form in `text` (Void when there are none)"""
    results = self.run_source(text)
    return results[-1] if results else make_void()


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_interpreter(debug: bool = False) -> SchemeInterpreter:
  """Factory function returning an interpreter"""
  return SchemeInterpreter(debug)


def create_debug_interpreter() -> SchemeInterpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)
