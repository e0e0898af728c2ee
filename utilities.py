"""
Utilities module for the Scheme analyzer/interpreter
Contains common helper functions to reduce code duplication
"""

from typing import Any, Dict, List, Optional
import re

from error_handling import (
  SchemeRuntimeError,
  SchemeAnalysisError,
  MALFORMED_SYNTAX,
  INVALID_IDENTIFIER,
  UNDEFINED_VARIABLE,
  WRONG_TYPE,
  ARITY_MISMATCH,
  NOT_A_PROCEDURE,
  REDEFINITION_OF_RESERVED,
  ILLEGAL_QUOTE_STRUCTURE,
)


# ==================== IDENTIFIER UTILITIES ====================

# Optional sign, digits with at most one '.', optional exponent with digits
NUMERIC_LITERAL_PATTERN = re.compile(r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')

FORBIDDEN_IDENTIFIER_CHARS = "#'\"`"
FORBIDDEN_IDENTIFIER_START = ".@"


def looks_numeric(name: str) -> bool:
  """True when `name` would read as a number literal (1, -1, +123, .5, 1e-3)"""
  return NUMERIC_LITERAL_PATTERN.fullmatch(name) is not None


def identifier_problem(name: str) -> Optional[str]:
  """
  Explain why `name` cannot be a variable, or return None if it can

  Examples:
    identifier_problem("x") -> None
    identifier_problem("1x") -> "starts with invalid character '1'"
    identifier_problem("+5") -> "numeric format is reserved for literals"
  """
  if not name:
    return "empty name"
  first = name[0]
  if first.isdigit() or first in FORBIDDEN_IDENTIFIER_START:
    return f"starts with invalid character '{first}'"
  for char in name:
    if char in FORBIDDEN_IDENTIFIER_CHARS:
      return f"contains forbidden character '{char}'"
  if looks_numeric(name):
    return "numeric format is reserved for literals"
  return None


def validate_identifier(name: str, span=None) -> str:
  """Return `name` unchanged, or raise InvalidIdentifier"""
  problem = identifier_problem(name)
  if problem is not None:
    raise SchemeAnalysisError(
      f"Invalid variable name '{name}': {problem}", INVALID_IDENTIFIER, span
    )
  return name


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(
  func_name: str,
  param_name: str,
  expected: str,
  actual: Dict
) -> SchemeRuntimeError:
  """
  Generate type mismatch error

  Args:
    func_name: Operator name
    param_name: Operand description
    expected: Expected type
    actual: Actual value dict

  Returns:
    SchemeRuntimeError with formatted message
  """
  actual_type = actual.get('type', 'Unknown')
  return SchemeRuntimeError(
    f"{func_name} requires {expected} for {param_name}, got {actual_type}",
    WRONG_TYPE
  )


def arity_error(func_name: str, expected: Any, got: int) -> SchemeRuntimeError:
  """
  Generate arity mismatch error for a procedure call

  Args:
    func_name: Procedure name
    expected: Expected number of arguments
    got: Actual number of arguments
  """
  return SchemeRuntimeError(
    f"Wrong number of arguments for {func_name}: expected {expected}, got {got}",
    ARITY_MISMATCH
  )


def undefined_variable_error(name: str) -> SchemeRuntimeError:
  return SchemeRuntimeError(f"Undefined variable: '{name}'", UNDEFINED_VARIABLE)


def not_a_procedure_error(value: Dict) -> SchemeRuntimeError:
  return SchemeRuntimeError(
    f"Attempt to apply a non-procedure of type {value.get('type', 'Unknown')}",
    NOT_A_PROCEDURE
  )


def redefinition_error(name: str) -> SchemeRuntimeError:
  return SchemeRuntimeError(
    f"Cannot redefine primitive or reserved word '{name}'",
    REDEFINITION_OF_RESERVED
  )


def malformed_syntax_error(message: str, span=None) -> SchemeAnalysisError:
  return SchemeAnalysisError(message, MALFORMED_SYNTAX, span)


def form_arity_error(form: str, expected: str, got: int, span=None) -> SchemeAnalysisError:
  """Wrong operand count for a special form or primitive, detected at analysis"""
  return SchemeAnalysisError(
    f"{form} requires {expected}, got {got}", MALFORMED_SYNTAX, span
  )


def quote_error(message: str) -> SchemeRuntimeError:
  return SchemeRuntimeError(f"quote: {message}", ILLEGAL_QUOTE_STRUCTURE)


# ==================== VALIDATION UTILITIES ====================

def validate_operand_types(
  func_name: str,
  args: List[Dict],
  allowed_types: List[str]
) -> None:
  """
  Validate every operand has one of the allowed types

  Raises:
    SchemeRuntimeError (WrongType) if validation fails
  """
  for i, arg in enumerate(args):
    if arg.get('type') not in allowed_types:
      raise type_mismatch_error(
        func_name,
        f"argument {i+1}",
        " or ".join(allowed_types),
        arg
      )
