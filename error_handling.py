"""
Error handling for the Scheme reader, analyzer and evaluator
Parse errors carry line/column context; every language error is a SchemeRuntimeError
"""

import re
from typing import List, Optional, Dict, Tuple
from pyparsing import ParseException


# ============================================================================
# ERROR CATEGORIES
# ============================================================================

MALFORMED_SYNTAX = "MalformedSyntax"
INVALID_IDENTIFIER = "InvalidIdentifier"
UNDEFINED_VARIABLE = "UndefinedVariable"
WRONG_TYPE = "WrongType"
DIVISION_BY_ZERO = "DivisionByZero"
ARITY_MISMATCH = "ArityMismatch"
NOT_A_PROCEDURE = "NotAProcedure"
REDEFINITION_OF_RESERVED = "RedefinitionOfReserved"
ILLEGAL_QUOTE_STRUCTURE = "IllegalQuoteStructure"
INTEGER_OVERFLOW = "IntegerOverflow"

ERROR_KINDS = (
    MALFORMED_SYNTAX,
    INVALID_IDENTIFIER,
    UNDEFINED_VARIABLE,
    WRONG_TYPE,
    DIVISION_BY_ZERO,
    ARITY_MISMATCH,
    NOT_A_PROCEDURE,
    REDEFINITION_OF_RESERVED,
    ILLEGAL_QUOTE_STRUCTURE,
    INTEGER_OVERFLOW,
)


# ============================================================================
# PARSE ERROR RECORDS
# ============================================================================

def make_parse_error(
    message: str,
    line: int,
    column: int,
    offset: int = 0,
    expected: Optional[List[str]] = None,
    found: Optional[str] = None,
    excerpt: Optional[str] = None,
    hints: Optional[List[str]] = None
) -> Dict:
    """Reader error record; `offset` is the character index into the source"""
    return {
        'message': message,
        'line': line,
        'column': column,
        'offset': offset,
        'expected': expected or [],
        'found': found,
        'excerpt': excerpt,
        'hints': hints or []
    }


def format_parse_error(error: Dict) -> str:
    lines = [
        f"Parse error at line {error['line']}, column {error['column']}:",
        f"  {error['message']}",
    ]
    if error['expected']:
        lines.append("  expected " + " or ".join(error['expected']))
    if error['found']:
        lines.append(f"  found {error['found']}")
    if error['excerpt']:
        lines.append(error['excerpt'])
    lines.extend(f"  hint: {hint}" for hint in error['hints'])
    return '\n'.join(lines) + '\n'


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

# A string literal (possibly unterminated) or a bare atom
TOKEN_PATTERN = re.compile(r'"(?:[^"\\]|\\.)*"?|[^\s()";\']+')


def source_excerpt(source_text: str, line_num: int, col_num: int, before: int = 2) -> str:
    """The offending line plus up to `before` preceding lines, with a caret under the column.

    Lines after the error are left out: for an unclosed form they hold
    nothing the reader got to.
    """
    lines = source_text.split('\n')
    if not 1 <= line_num <= len(lines):
        return ""
    shown = range(max(1, line_num - before), line_num + 1)
    excerpt = [f"{n:4d} | {lines[n - 1]}" for n in shown]
    excerpt.append("     | " + " " * (col_num - 1) + "^")
    return '\n'.join(excerpt)


def scan_source(source_text: str) -> Tuple[int, bool]:
    """Net count of '(' minus ')' outside strings and comments, and whether
    the text ends inside a string literal"""
    depth = 0
    in_string = False
    escaped = False
    in_comment = False
    for char in source_text:
        if in_comment:
            if char == '\n':
                in_comment = False
            continue
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == ';':
            in_comment = True
        elif char == '"':
            in_string = True
        elif char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
    return depth, in_string


def count_unbalanced_parens(source_text: str) -> int:
    return scan_source(source_text)[0]


def extract_expected(exc: ParseException) -> List[str]:
    """Extract expected tokens from exception"""
    msg = str(exc)
    if msg.startswith("Expected"):
        # "Expected end of text, found ')'  (at char 5), (line:1, col:6)"
        expected = msg[len("Expected"):].split(", found")[0].split("  (at")[0].strip()
        if expected:
            return [expected]
    return ["a datum"]


def token_at(source_text: str, line_num: int, col_num: int) -> str:
    """The token the reader stopped on"""
    lines = source_text.split('\n')
    if line_num > len(lines):
        return "end of input"
    rest = lines[line_num - 1][col_num - 1:].lstrip()
    if not rest:
        return "end of input" if line_num == len(lines) else "end of line"
    if rest[0] in "()'":
        return repr(rest[0])
    match = TOKEN_PATTERN.match(rest)
    return repr(match.group(0) if match else rest[0])


def reader_hints(source_text: str, found: str) -> List[str]:
    """Likely causes of a reader failure, judged from the whole source"""
    hints = []

    depth, in_string = scan_source(source_text)
    if depth > 0:
        hints.append(f"{depth} unclosed '(' - add the missing ')'")
    elif depth < 0:
        hints.append(f"{-depth} extra ')' - remove the unmatched ')'")

    if in_string:
        hints.append("unterminated string literal - close it with '\"'")

    if "[" in found or "]" in found:
        hints.append("use parentheses () instead of brackets []")

    return hints


def enhance_parse_exception_dict(exc: ParseException, source_text: str) -> Dict:
    """Convert a pyparsing exception into a parse error record"""
    line_num, col_num = exc.lineno, exc.col
    found = token_at(source_text, line_num, col_num)
    return make_parse_error(
        message=exc.msg,
        line=line_num,
        column=col_num,
        offset=exc.loc,
        expected=extract_expected(exc),
        found=found,
        excerpt=source_excerpt(source_text, line_num, col_num),
        hints=reader_hints(source_text, found)
    )


# ============================================================================
# EXCEPTION CLASSES
# ============================================================================

class SchemeParseError(Exception):
    """Reader error with line/column context"""
    def __init__(self, message: str, line: int = 0, column: int = 0, offset: int = 0,
                 expected: Optional[List[str]] = None, found: Optional[str] = None,
                 excerpt: Optional[str] = None, hints: Optional[List[str]] = None,
                 filename: str = "<input>"):
        self.message = message
        self.line = line
        self.column = column
        self.offset = offset
        self.expected = expected or []
        self.found = found
        self.excerpt = excerpt
        self.hints = hints or []
        self.filename = filename
        super().__init__(message)

    @classmethod
    def from_dict(cls, error: Dict, filename: str = "<input>") -> 'SchemeParseError':
        return cls(filename=filename, **error)

    def __str__(self) -> str:
        error_dict = make_parse_error(
            self.message, self.line, self.column, self.offset,
            self.expected, self.found, self.excerpt, self.hints
        )
        return f"{self.filename}: " + format_parse_error(error_dict)


class SchemeRuntimeError(RuntimeError):
    """The single error kind raised by analysis and evaluation

    `kind` names the category (one of ERROR_KINDS); the message is
    human-readable.
    """

    prefix = "Runtime error"

    def __init__(self, message: str, kind: str = WRONG_TYPE, span=None):
        self.message = message
        self.kind = kind
        self.span = span
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        if self.span:
            return f"{self.prefix} at {self.span} [{self.kind}]: {self.message}"
        return f"{self.prefix} [{self.kind}]: {self.message}"


class SchemeAnalysisError(SchemeRuntimeError):
    """Raised by the analyzer for malformed forms and invalid identifiers"""

    prefix = "Analysis error"


def create_enhanced_parser_with_errors(parser_func, source_text: str, filename: str = "<input>"):
    """Wrapper to add enhanced error handling to any pyparsing entry point"""
    def enhanced_parse(*args, **kwargs):
        try:
            return parser_func(*args, **kwargs)
        except ParseException as e:
            error_dict = enhance_parse_exception_dict(e, source_text)
            raise SchemeParseError.from_dict(error_dict, filename) from e

    return enhanced_parse
