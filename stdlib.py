"""
Scheme Standard Library
Primitive operators: numeric tower, comparisons, pairs and predicates
Every rule takes the list of evaluated operands and returns a value dict
"""

from types import MappingProxyType
from typing import Dict, List, Tuple

from error_handling import SchemeRuntimeError, DIVISION_BY_ZERO, INTEGER_OVERFLOW, WRONG_TYPE
from values import (
  INTEGER, RATIONAL, BOOLEAN, SYMBOL, STRING, PAIR, NULL, VOID, PROCEDURE,
  NUMERIC_TYPES,
  make_integer, make_rational, make_boolean, make_pair, make_void, make_terminate, make_list,
  is_false, is_true, pair_car, pair_cdr, display_text,
)
from utilities import type_mismatch_error, validate_operand_types


# Range enforced by expt
INT_MIN = -2 ** 31
INT_MAX = 2 ** 31 - 1


# ============================================================================
# NUMERIC TOWER
# ============================================================================

def as_fraction(value: Dict) -> Tuple[int, int]:
  """Integer n -> (n, 1); Rational stays (numerator, denominator)"""
  if value['type'] == INTEGER:
    return value['value'], 1
  return value['value']


def is_zero(value: Dict) -> bool:
  return as_fraction(value)[0] == 0


def numeric_add(x: Dict, y: Dict) -> Dict:
  if x['type'] == INTEGER and y['type'] == INTEGER:
    return make_integer(x['value'] + y['value'])
  (a, b), (c, d) = as_fraction(x), as_fraction(y)
  return make_rational(a * d + c * b, b * d)


def numeric_negate(x: Dict) -> Dict:
  if x['type'] == INTEGER:
    return make_integer(-x['value'])
  numerator, denominator = x['value']
  return make_rational(-numerator, denominator)


def numeric_sub(x: Dict, y: Dict) -> Dict:
  return numeric_add(x, numeric_negate(y))


def numeric_mul(x: Dict, y: Dict) -> Dict:
  if x['type'] == INTEGER and y['type'] == INTEGER:
    return make_integer(x['value'] * y['value'])
  (a, b), (c, d) = as_fraction(x), as_fraction(y)
  return make_rational(a * c, b * d)


def numeric_div(x: Dict, y: Dict) -> Dict:
  """Integer result only for evenly divisible integers; rationals stay unreduced"""
  if is_zero(y):
    raise SchemeRuntimeError("Division by zero", DIVISION_BY_ZERO)

  if x['type'] == INTEGER and y['type'] == INTEGER:
    a, b = x['value'], y['value']
    if a % b == 0:
      return make_integer(a // b)
    return make_rational(a, b)

  (a, b), (c, d) = as_fraction(x), as_fraction(y)
  return make_rational(a * d, b * c)


def compare_numeric(x: Dict, y: Dict) -> int:
  """Cross-multiplication comparison: -1, 0 or 1"""
  (a, b), (c, d) = as_fraction(x), as_fraction(y)
  left, right = a * d, c * b
  return (left > right) - (left < right)


def fold_numeric(name: str, args: List[Dict], combine, identity: Dict) -> Dict:
  validate_operand_types(name, args, list(NUMERIC_TYPES))
  result = identity
  for arg in args:
    result = combine(result, arg)
  return result


def scheme_add(args: List[Dict]) -> Dict:
  return fold_numeric("+", args, numeric_add, make_integer(0))


def scheme_mul(args: List[Dict]) -> Dict:
  return fold_numeric("*", args, numeric_mul, make_integer(1))


def scheme_sub(args: List[Dict]) -> Dict:
  """(- x) negates; (- x y ...) subtracts left to right"""
  validate_operand_types("-", args, list(NUMERIC_TYPES))
  if len(args) == 1:
    return numeric_negate(args[0])
  result = args[0]
  for arg in args[1:]:
    result = numeric_sub(result, arg)
  return result


def scheme_div(args: List[Dict]) -> Dict:
  """(/ x) is the reciprocal; (/ x y ...) divides left to right"""
  validate_operand_types("/", args, list(NUMERIC_TYPES))
  if len(args) == 1:
    return numeric_div(make_integer(1), args[0])
  result = args[0]
  for arg in args[1:]:
    result = numeric_div(result, arg)
  return result


def scheme_modulo(args: List[Dict]) -> Dict:
  """Remainder with the sign of the dividend"""
  x, y = args
  validate_operand_types("modulo", args, [INTEGER])
  if y['value'] == 0:
    raise SchemeRuntimeError("modulo: division by zero", DIVISION_BY_ZERO)
  remainder = abs(x['value']) % abs(y['value'])
  return make_integer(-remainder if x['value'] < 0 else remainder)


def check_int_range(n: int) -> int:
  if n < INT_MIN or n > INT_MAX:
    raise SchemeRuntimeError(f"expt: result {n} does not fit in a 32-bit integer",
                             INTEGER_OVERFLOW)
  return n


def scheme_expt(args: List[Dict]) -> Dict:
  """Exponentiation by squaring with overflow checks on every product"""
  base, exponent = args
  validate_operand_types("expt", args, [INTEGER])
  b, e = base['value'], exponent['value']
  if e < 0:
    raise SchemeRuntimeError(f"expt: negative exponent {e}", WRONG_TYPE)
  if b == 0 and e == 0:
    raise SchemeRuntimeError("expt: 0^0 is undefined", WRONG_TYPE)

  result = 1
  while e > 0:
    if e & 1:
      result = check_int_range(result * b)
    e >>= 1
    if e:
      b = check_int_range(b * b)
  return make_integer(result)


# ============================================================================
# COMPARISONS
# ============================================================================

def make_comparison(name: str, holds):
  """Variadic comparison: every adjacent pair must satisfy `holds`"""
  def compare(args: List[Dict]) -> Dict:
    validate_operand_types(name, args, list(NUMERIC_TYPES))
    for left, right in zip(args, args[1:]):
      if not holds(compare_numeric(left, right)):
        return make_boolean(False)
    return make_boolean(True)
  compare.__name__ = f"scheme_compare_{name}"
  return compare


scheme_lt = make_comparison("<", lambda c: c < 0)
scheme_le = make_comparison("<=", lambda c: c <= 0)
scheme_num_eq = make_comparison("=", lambda c: c == 0)
scheme_ge = make_comparison(">=", lambda c: c >= 0)
scheme_gt = make_comparison(">", lambda c: c > 0)


def is_eq(x: Dict, y: Dict) -> bool:
  if x['type'] != y['type']:
    return False
  if x['type'] in (INTEGER, BOOLEAN, SYMBOL):
    return x['value'] == y['value']
  if x['type'] in (NULL, VOID):
    return True
  return x is y


def scheme_eq(args: List[Dict]) -> Dict:
  return make_boolean(is_eq(*args))


# ============================================================================
# PAIRS AND LISTS
# ============================================================================

def require_pair(name: str, value: Dict) -> Dict:
  if value['type'] != PAIR:
    raise type_mismatch_error(name, "argument 1", PAIR, value)
  return value


def scheme_cons(args: List[Dict]) -> Dict:
  car, cdr = args
  return make_pair(car, cdr)


def scheme_car(args: List[Dict]) -> Dict:
  return pair_car(require_pair("car", args[0]))


def scheme_cdr(args: List[Dict]) -> Dict:
  return pair_cdr(require_pair("cdr", args[0]))


def scheme_set_car(args: List[Dict]) -> Dict:
  pair, value = args
  require_pair("set-car!", pair)['value']['car'] = value
  return make_void()


def scheme_set_cdr(args: List[Dict]) -> Dict:
  pair, value = args
  require_pair("set-cdr!", pair)['value']['cdr'] = value
  return make_void()


def scheme_list(args: List[Dict]) -> Dict:
  return make_list(args)


def is_proper_list(value: Dict) -> bool:
  """Tortoise and hare over the cdr chain; a meeting means a cycle"""
  if value['type'] == NULL:
    return True
  if value['type'] != PAIR:
    return False

  slow = value
  fast = pair_cdr(value)
  while True:
    for _ in range(2):
      if fast['type'] == NULL:
        return True
      if fast['type'] != PAIR:
        return False
      if fast is slow:
        return False
      fast = pair_cdr(fast)
    slow = pair_cdr(slow)


def scheme_list_p(args: List[Dict]) -> Dict:
  return make_boolean(is_proper_list(args[0]))


# ============================================================================
# PREDICATES AND MISC
# ============================================================================

def type_predicate(*type_names: str):
  def predicate(args: List[Dict]) -> Dict:
    return make_boolean(args[0]['type'] in type_names)
  return predicate


def scheme_not(args: List[Dict]) -> Dict:
  return make_boolean(is_false(args[0]))


def scheme_display(args: List[Dict]) -> Dict:
  """Write a value to stdout without a newline"""
  print(display_text(args[0]), end='')
  return make_void()


def scheme_and(args: List[Dict]) -> Dict:
  """`and` applied as a procedure; operands are already evaluated"""
  result = make_boolean(True)
  for arg in args:
    if is_false(arg):
      return make_boolean(False)
    result = arg
  return result


def scheme_or(args: List[Dict]) -> Dict:
  return make_boolean(any(is_true(arg) for arg in args))


def scheme_void(args: List[Dict]) -> Dict:
  return make_void()


def scheme_exit(args: List[Dict]) -> Dict:
  return make_terminate()


# ============================================================================
# PRIMITIVE TABLE
# ============================================================================

PRIMITIVE_RULES = MappingProxyType({
    "ADD": scheme_add,
    "SUB": scheme_sub,
    "MUL": scheme_mul,
    "DIV": scheme_div,
    "MODULO": scheme_modulo,
    "EXPT": scheme_expt,
    "LIST": scheme_list,
    "LT": scheme_lt,
    "LE": scheme_le,
    "NUM_EQ": scheme_num_eq,
    "GE": scheme_ge,
    "GT": scheme_gt,
    "AND": scheme_and,
    "OR": scheme_or,
    "NOT": scheme_not,
    "CONS": scheme_cons,
    "CAR": scheme_car,
    "CDR": scheme_cdr,
    "IS_LIST": scheme_list_p,
    "IS_BOOLEAN": type_predicate(BOOLEAN),
    "IS_NUMBER": type_predicate(INTEGER, RATIONAL),
    "IS_NULL": type_predicate(NULL),
    "IS_PAIR": type_predicate(PAIR),
    "IS_PROCEDURE": type_predicate(PROCEDURE),
    "IS_SYMBOL": type_predicate(SYMBOL),
    "IS_STRING": type_predicate(STRING),
    "IS_EQ": scheme_eq,
    "DISPLAY": scheme_display,
    "SET_CAR": scheme_set_car,
    "SET_CDR": scheme_set_cdr,
    "VOID": scheme_void,
    "EXIT": scheme_exit,
})


def apply_primitive(op: str, args: List[Dict]) -> Dict:
  """Run the rule for operator tag `op` on evaluated operands"""
  if op not in PRIMITIVE_RULES:
    raise SchemeRuntimeError(f"Unknown primitive operator: {op}", WRONG_TYPE)
  return PRIMITIVE_RULES[op](args)
