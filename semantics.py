"""
Scheme Semantics Analysis - Functional Style
Turns reader SyntaxNodes into expression trees (plain dictionaries)
"""

from types import MappingProxyType
from typing import Any, Dict, List, Optional

from parsing import SyntaxNode, SourceSpan, SYMBOL, NUMBER, RATIONAL, STRING, BOOLEAN, LIST
from environment import env_extend, env_contains
from values import make_void
from utilities import validate_identifier, malformed_syntax_error, form_arity_error


# ============================================================================
# NAME TABLES
# ============================================================================

# Primitive name -> operator tag
PRIMITIVES = MappingProxyType({
    "+": "ADD",
    "-": "SUB",
    "*": "MUL",
    "/": "DIV",
    "modulo": "MODULO",
    "expt": "EXPT",
    "list": "LIST",
    "<": "LT",
    "<=": "LE",
    "=": "NUM_EQ",
    ">=": "GE",
    ">": "GT",
    "and": "AND",
    "or": "OR",
    "not": "NOT",
    "cons": "CONS",
    "car": "CAR",
    "cdr": "CDR",
    "list?": "IS_LIST",
    "boolean?": "IS_BOOLEAN",
    "number?": "IS_NUMBER",
    "null?": "IS_NULL",
    "pair?": "IS_PAIR",
    "procedure?": "IS_PROCEDURE",
    "symbol?": "IS_SYMBOL",
    "string?": "IS_STRING",
    "eq?": "IS_EQ",
    "display": "DISPLAY",
    "set-car!": "SET_CAR",
    "set-cdr!": "SET_CDR",
    "void": "VOID",
    "exit": "EXIT",
})

# Operator tag -> (minimum, maximum) operand count; maximum None means variadic
PRIMITIVE_ARITY = MappingProxyType({
    "ADD": (0, None),
    "SUB": (1, None),
    "MUL": (0, None),
    "DIV": (1, None),
    "MODULO": (2, 2),
    "EXPT": (2, 2),
    "LIST": (0, None),
    "LT": (0, None),
    "LE": (0, None),
    "NUM_EQ": (0, None),
    "GE": (0, None),
    "GT": (0, None),
    "AND": (0, None),
    "OR": (0, None),
    "NOT": (1, 1),
    "CONS": (2, 2),
    "CAR": (1, 1),
    "CDR": (1, 1),
    "IS_LIST": (1, 1),
    "IS_BOOLEAN": (1, 1),
    "IS_NUMBER": (1, 1),
    "IS_NULL": (1, 1),
    "IS_PAIR": (1, 1),
    "IS_PROCEDURE": (1, 1),
    "IS_SYMBOL": (1, 1),
    "IS_STRING": (1, 1),
    "IS_EQ": (2, 2),
    "DISPLAY": (1, 1),
    "SET_CAR": (2, 2),
    "SET_CDR": (2, 2),
    "VOID": (0, 0),
    "EXIT": (0, 0),
})

# Special-form keyword -> form tag
RESERVED_WORDS = MappingProxyType({
    "quote": "QUOTE",
    "if": "IF",
    "lambda": "LAMBDA",
    "define": "DEFINE",
    "begin": "BEGIN",
    "cond": "COND",
    "let": "LET",
    "letrec": "LETREC",
    "set!": "SET",
})


def describe_arity(arity) -> str:
  minimum, maximum = arity
  if maximum is None:
    return f"at least {minimum} operand(s)"
  if minimum == maximum:
    return f"exactly {minimum} operand(s)"
  return f"{minimum} to {maximum} operands"


def arity_accepts(arity, count: int) -> bool:
  minimum, maximum = arity
  return count >= minimum and (maximum is None or count <= maximum)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

def make_ast_node(node_type: str, value: Any, children: Optional[List[Dict]] = None,
                  span: Optional[SourceSpan] = None) -> Dict:
  """Create an expression node dictionary"""
  return {
      'type': node_type,
      'value': value,
      'children': children or [],
      'span': span
  }


def bind_placeholders(env: Optional[Dict], names: List[str]) -> Dict:
  """Analysis-time frame marking `names` as locally bound variables"""
  return env_extend(env, {name: make_void() for name in names})


# ============================================================================
# ATOMS
# ============================================================================

def analyze_number(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  return make_ast_node("FIXNUM", node.value, [], node.span)


def analyze_rational(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  return make_ast_node("RATIONAL_NUM", node.value, [], node.span)


def analyze_string(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  return make_ast_node("STRING", node.value, [], node.span)


def analyze_boolean(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  return make_ast_node("TRUE" if node.value else "FALSE", None, [], node.span)


def analyze_symbol(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  """Variable reference; numeric-looking and reserved-character names are rejected"""
  validate_identifier(node.value, node.span)
  return make_ast_node("VAR", node.value, [], node.span)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def binding_name(node: SyntaxNode, form: str) -> str:
  """Name in a binding position (define, set!, parameters, let names)"""
  if not node.is_symbol:
    raise malformed_syntax_error(f"{form}: expected a variable name, got {node}", node.span)
  return validate_identifier(node.value, node.span)


def analyze_params(node: SyntaxNode, form: str) -> List[str]:
  """Parameter list: a list of symbols only"""
  if not node.is_list:
    raise malformed_syntax_error(f"{form}: parameter list must be a list, got {node}", node.span)
  return [binding_name(param, form) for param in node.children]


def analyze_body(body: List[SyntaxNode], env: Dict, debug: bool, span=None) -> Dict:
  """One or more body expressions; several are wrapped in BEGIN"""
  exprs = [analyze_syntax(expr, env, debug) for expr in body]
  if len(exprs) == 1:
    return exprs[0]
  return make_ast_node("BEGIN", None, exprs, span)


def make_lambda_node(params: List[str], body: List[SyntaxNode], env: Dict, debug: bool,
                     span=None, name: Optional[str] = None) -> Dict:
  body_env = bind_placeholders(env, params)
  body_ast = analyze_body(body, body_env, debug, span)
  return make_ast_node("LAMBDA", {'params': params, 'name': name}, [body_ast], span)


# ============================================================================
# SPECIAL FORMS
# ============================================================================

def analyze_quote(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  """(quote datum) keeps the datum as syntax; it becomes a value at evaluation"""
  args = node.children[1:]
  if len(args) != 1:
    raise form_arity_error("quote", "exactly 1 argument", len(args), node.span)
  return make_ast_node("QUOTE", args[0], [], node.span)


def analyze_if(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  args = node.children[1:]
  if len(args) not in (2, 3):
    raise form_arity_error("if", "2 or 3 arguments", len(args), node.span)
  children = [analyze_syntax(arg, env, debug) for arg in args]
  if len(children) == 2:
    children.append(make_ast_node("FALSE", None, [], node.span))
  return make_ast_node("IF", None, children, node.span)


def analyze_lambda(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  """(lambda (params...) body...)"""
  args = node.children[1:]
  if len(args) < 2:
    raise form_arity_error("lambda", "a parameter list and at least one body expression",
                           len(args), node.span)
  params = analyze_params(args[0], "lambda")
  return make_lambda_node(params, args[1:], env, debug, node.span)


def analyze_define(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  """(define name expr) or the shorthand (define (f params...) body...)"""
  args = node.children[1:]
  if not args:
    raise form_arity_error("define", "a name and an expression", 0, node.span)

  target = args[0]
  if target.is_list:
    # (define (f a b) body...) => (define f (lambda (a b) body...))
    if not target.children:
      raise malformed_syntax_error("define: missing procedure name", target.span)
    if len(args) < 2:
      raise form_arity_error("define", "at least one body expression", 0, node.span)
    name = binding_name(target.children[0], "define")
    params = [binding_name(param, "define") for param in target.children[1:]]
    value_ast = make_lambda_node(params, args[1:], env, debug, node.span, name)
    return make_ast_node("DEFINE", name, [value_ast], node.span)

  if len(args) < 2:
    raise form_arity_error("define", "a name and an expression", len(args), node.span)
  name = binding_name(target, "define")
  value_ast = analyze_body(args[1:], env, debug, node.span)
  if value_ast['type'] == "LAMBDA" and value_ast['value']['name'] is None:
    value_ast = make_ast_node("LAMBDA", {**value_ast['value'], 'name': name},
                              value_ast['children'], value_ast['span'])
  return make_ast_node("DEFINE", name, [value_ast], node.span)


def analyze_begin(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  children = [analyze_syntax(arg, env, debug) for arg in node.children[1:]]
  return make_ast_node("BEGIN", None, children, node.span)


def analyze_cond(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  """(cond (test body...) ...); a test-only clause yields the test value"""
  clauses = node.children[1:]
  if not clauses:
    raise form_arity_error("cond", "at least one clause", 0, node.span)

  else_is_keyword = not env_contains(env, "else")
  analyzed = []
  for clause in clauses:
    if not clause.is_list or not clause.children:
      raise malformed_syntax_error(f"cond: clause must be a non-empty list, got {clause}",
                                   clause.span)
    test = clause.children[0]
    if else_is_keyword and test.is_symbol and test.value == "else":
      test_ast = make_ast_node("TRUE", None, [], test.span)
    else:
      test_ast = analyze_syntax(test, env, debug)
    body = [analyze_syntax(expr, env, debug) for expr in clause.children[1:]]
    analyzed.append({'test': test_ast, 'body': body})

  return make_ast_node("COND", analyzed, [], node.span)


def analyze_bindings(node: SyntaxNode, form: str) -> List[tuple]:
  """((name expr) ...) -> [(name, expr_syntax)]"""
  if not node.is_list:
    raise malformed_syntax_error(f"{form}: binding list must be a list, got {node}", node.span)
  bindings = []
  for binding in node.children:
    if not binding.is_list or len(binding.children) != 2:
      raise malformed_syntax_error(f"{form}: each binding must be (name expr), got {binding}",
                                   binding.span)
    bindings.append((binding_name(binding.children[0], form), binding.children[1]))
  return bindings


def analyze_let(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  """(let ((name expr) ...) body...); inits cannot see each other"""
  args = node.children[1:]
  if len(args) < 2:
    raise form_arity_error("let", "a binding list and at least one body expression",
                           len(args), node.span)
  bindings = analyze_bindings(args[0], "let")
  names = [name for name, _ in bindings]
  inits = [(name, analyze_syntax(expr, env, debug)) for name, expr in bindings]
  body_ast = analyze_body(args[1:], bind_placeholders(env, names), debug, node.span)
  return make_ast_node("LET", {'bindings': inits}, [body_ast], node.span)


def analyze_letrec(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  """(letrec ((name expr) ...) body...); inits see every name"""
  args = node.children[1:]
  if len(args) < 2:
    raise form_arity_error("letrec", "a binding list and at least one body expression",
                           len(args), node.span)
  bindings = analyze_bindings(args[0], "letrec")
  inner_env = bind_placeholders(env, [name for name, _ in bindings])
  inits = [(name, analyze_syntax(expr, inner_env, debug)) for name, expr in bindings]
  body_ast = analyze_body(args[1:], inner_env, debug, node.span)
  return make_ast_node("LETREC", {'bindings': inits}, [body_ast], node.span)


def analyze_set(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  args = node.children[1:]
  if len(args) != 2:
    raise form_arity_error("set!", "exactly 2 arguments", len(args), node.span)
  name = binding_name(args[0], "set!")
  return make_ast_node("SET", name, [analyze_syntax(args[1], env, debug)], node.span)


SPECIAL_FORM_ANALYZERS = MappingProxyType({
    "QUOTE": analyze_quote,
    "IF": analyze_if,
    "LAMBDA": analyze_lambda,
    "DEFINE": analyze_define,
    "BEGIN": analyze_begin,
    "COND": analyze_cond,
    "LET": analyze_let,
    "LETREC": analyze_letrec,
    "SET": analyze_set,
})


# ============================================================================
# APPLICATION AND PRIMITIVES
# ============================================================================

def analyze_primitive(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  """Operator node for a primitive call, arity checked here"""
  name = node.children[0].value
  op = PRIMITIVES[name]
  operands = [analyze_syntax(arg, env, debug) for arg in node.children[1:]]

  arity = PRIMITIVE_ARITY[op]
  if not arity_accepts(arity, len(operands)):
    raise form_arity_error(name, describe_arity(arity), len(operands), node.span)

  if op == "AND":
    return make_ast_node("AND", None, operands, node.span)
  if op == "OR":
    return make_ast_node("OR", None, operands, node.span)
  if op == "VOID":
    return make_ast_node("MAKE_VOID", None, [], node.span)
  if op == "EXIT":
    return make_ast_node("EXIT", None, [], node.span)

  minimum, maximum = arity
  if maximum is None:
    node_type = "VARIADIC"
  elif maximum == 1:
    node_type = "UNARY"
  else:
    node_type = "BINARY"
  return make_ast_node(node_type, {'op': op, 'name': name}, operands, node.span)


def analyze_application(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  children = [analyze_syntax(child, env, debug) for child in node.children]
  return make_ast_node("APPLY", None, children, node.span)


def analyze_list(node: SyntaxNode, env: Dict, debug: bool = False) -> Dict:
  """Resolve the head of a list: bound variable, primitive, special form, or free call"""
  if not node.children:
    # () evaluates to the empty list
    return make_ast_node("QUOTE", node, [], node.span)

  head = node.children[0]
  if not head.is_symbol:
    return analyze_application(node, env, debug)

  op = head.value
  # Local bindings shadow primitives and keywords
  if env_contains(env, op):
    return analyze_application(node, env, debug)
  if op in PRIMITIVES:
    return analyze_primitive(node, env, debug)
  if op in RESERVED_WORDS:
    return SPECIAL_FORM_ANALYZERS[RESERVED_WORDS[op]](node, env, debug)
  return analyze_application(node, env, debug)


# ============================================================================
# MAIN ANALYSIS FUNCTION
# ============================================================================

def analyze_syntax(node: SyntaxNode, env: Optional[Dict] = None, debug: bool = False) -> Dict:
  """Analyze a single syntax node and return an expression node"""
  if debug:
    print(f"Analyzing: {node.type} {node}")

  handlers = {
      NUMBER: analyze_number,
      RATIONAL: analyze_rational,
      STRING: analyze_string,
      BOOLEAN: analyze_boolean,
      SYMBOL: analyze_symbol,
      LIST: analyze_list,
  }

  if node.type not in handlers:
    raise malformed_syntax_error(f"Unknown syntax node type: {node.type}", node.span)
  return handlers[node.type](node, env, debug)


def analyze_program(nodes: List[SyntaxNode], env: Optional[Dict] = None,
                    debug: bool = False) -> List[Dict]:
  """Analyze a sequence of top-level forms against one environment"""
  return [analyze_syntax(node, env, debug) for node in nodes]


def pretty_print_ast(ast_node: Dict, indent: int = 0) -> str:
  """Indented dump of an expression tree for --analyze and :analyze"""
  pad = "  " * indent
  node_type = ast_node['type']
  value = ast_node['value']

  if node_type == "QUOTE":
    result = f"{pad}QUOTE {value}\n"
  elif node_type in ("LET", "LETREC"):
    result = f"{pad}{node_type}\n"
    for name, init in value['bindings']:
      result += f"{pad}  [{name}]\n" + pretty_print_ast(init, indent + 2)
  elif node_type == "COND":
    result = f"{pad}COND\n"
    for clause in value:
      result += f"{pad}  CLAUSE\n" + pretty_print_ast(clause['test'], indent + 2)
      for expr in clause['body']:
        result += pretty_print_ast(expr, indent + 2)
  elif node_type in ("UNARY", "BINARY", "VARIADIC"):
    result = f"{pad}{node_type}({value['name']})\n"
  elif node_type == "LAMBDA":
    name = f" {value['name']}" if value['name'] else ""
    result = f"{pad}LAMBDA{name} ({' '.join(value['params'])})\n"
  elif value is not None:
    result = f"{pad}{node_type}({value!r})\n"
  else:
    result = f"{pad}{node_type}\n"

  for child in ast_node['children']:
    result += pretty_print_ast(child, indent + 1)
  return result


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class Analyzer:
  """Analyzer bound to a debug flag"""

  def __init__(self, debug: bool = False):
    self.debug = debug

  def analyze(self, node: SyntaxNode, env: Optional[Dict] = None) -> Dict:
    return analyze_syntax(node, env, self.debug)

  def analyze_program(self, nodes: List[SyntaxNode], env: Optional[Dict] = None) -> List[Dict]:
    return analyze_program(nodes, env, self.debug)


def create_analyzer(debug: bool = False) -> Analyzer:
  """Factory function returning an analyzer"""
  return Analyzer(debug)


def create_debug_analyzer() -> Analyzer:
  """Factory function returning a debug analyzer"""
  return create_analyzer(debug=True)
