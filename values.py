"""
Scheme runtime values
Tagged dictionaries: {'type': <tag>, 'value': <payload>}
"""

from typing import Any, Dict, List, Optional

from error_handling import SchemeRuntimeError, DIVISION_BY_ZERO


INTEGER = "Integer"
RATIONAL = "Rational"
BOOLEAN = "Boolean"
STRING = "String"
SYMBOL = "Symbol"
PAIR = "Pair"
NULL = "Null"
VOID = "Void"
PROCEDURE = "Procedure"
TERMINATE = "Terminate"

NUMERIC_TYPES = (INTEGER, RATIONAL)


# ============================================================================
# CONSTRUCTORS
# ============================================================================

def make_value(value: Any, type_name: str) -> Dict:
  """Create a runtime value"""
  return {
      'value': value,
      'type': type_name
  }


def make_integer(n: int) -> Dict:
  return make_value(n, INTEGER)


def make_rational(numerator: int, denominator: int) -> Dict:
  """Create an unreduced rational; the sign is kept on the numerator"""
  if denominator == 0:
    raise SchemeRuntimeError("Division by zero", DIVISION_BY_ZERO)
  if denominator < 0:
    numerator, denominator = -numerator, -denominator
  return make_value((numerator, denominator), RATIONAL)


def make_boolean(b: bool) -> Dict:
  return make_value(bool(b), BOOLEAN)


def make_string(s: str) -> Dict:
  return make_value(s, STRING)


def make_symbol(name: str) -> Dict:
  return make_value(name, SYMBOL)


def make_pair(car: Dict, cdr: Dict) -> Dict:
  """Create a pair; the car/cdr slots stay mutable"""
  return make_value({'car': car, 'cdr': cdr}, PAIR)


def make_null() -> Dict:
  return make_value(None, NULL)


def make_void() -> Dict:
  return make_value(None, VOID)


def make_terminate() -> Dict:
  return make_value(None, TERMINATE)


def make_procedure(params: Optional[List[str]], body: Optional[Dict], env: Optional[Dict],
                   name: Optional[str] = None, primitive: Optional[str] = None) -> Dict:
  """Create a closure, or a primitive procedure when `primitive` is set"""
  return make_value({
      'params': params,
      'body': body,
      'env': env,
      'name': name,
      'primitive': primitive
  }, PROCEDURE)


def make_list(items: List[Dict], tail: Optional[Dict] = None) -> Dict:
  """Build a pair chain right-to-left, terminated by `tail` (Null by default)"""
  result = tail if tail is not None else make_null()
  for item in reversed(items):
    result = make_pair(item, result)
  return result


# ============================================================================
# ACCESSORS AND PREDICATES
# ============================================================================

def is_false(value: Dict) -> bool:
  """Only boolean #f counts as false"""
  return value['type'] == BOOLEAN and value['value'] is False


def is_true(value: Dict) -> bool:
  return not is_false(value)


def pair_car(pair: Dict) -> Dict:
  return pair['value']['car']


def pair_cdr(pair: Dict) -> Dict:
  return pair['value']['cdr']


# ============================================================================
# EXTERNAL REPRESENTATION
# ============================================================================

STRING_ESCAPES = {'"': '\\"', '\\': '\\\\', '\n': '\\n', '\t': '\\t', '\r': '\\r'}


def _show_string(s: str) -> str:
  return '"' + ''.join(STRING_ESCAPES.get(c, c) for c in s) + '"'


def _show_procedure(proc: Dict) -> str:
  name = proc['value']['name'] or proc['value']['primitive']
  return f"#<procedure {name}>" if name else "#<procedure>"


def _show_pair(value: Dict, active: set) -> str:
  """Render a pair chain; pairs already being printed render as '...'"""
  parts = []
  entered = []
  current = value
  while current['type'] == PAIR:
    if id(current) in active:
      parts.append(". ...")
      current = None
      break
    active.add(id(current))
    entered.append(id(current))
    parts.append(_show(pair_car(current), active))
    current = pair_cdr(current)

  if current is not None and current['type'] != NULL:
    parts.append(". " + _show(current, active))

  for pair_id in entered:
    active.discard(pair_id)
  return "(" + " ".join(parts) + ")"


def _show(value: Dict, active: set) -> str:
  value_type = value['type']

  if value_type == INTEGER:
    return str(value['value'])
  elif value_type == RATIONAL:
    numerator, denominator = value['value']
    return f"{numerator}/{denominator}"
  elif value_type == BOOLEAN:
    return "#t" if value['value'] else "#f"
  elif value_type == STRING:
    return _show_string(value['value'])
  elif value_type == SYMBOL:
    return value['value']
  elif value_type == NULL:
    return "()"
  elif value_type == PAIR:
    if id(value) in active:
      return "..."
    return _show_pair(value, active)
  elif value_type == VOID:
    return "#<void>"
  elif value_type == PROCEDURE:
    return _show_procedure(value)
  elif value_type == TERMINATE:
    return "#<terminate>"
  return f"<{value_type}>"


def show_value(value: Dict) -> str:
  """External representation of a value; terminates on cyclic pairs"""
  return _show(value, set())


def display_text(value: Dict) -> str:
  """Text written by `display`: strings raw, everything else as show_value"""
  if value['type'] == STRING:
    return value['value']
  return show_value(value)
