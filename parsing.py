"""
Scheme reader
Turns source text into SyntaxNode trees with source spans
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from pyparsing import (
    Forward, Group, ParserElement, QuotedString, Regex,
    StringEnd, Suppress, ZeroOrMore, col, lineno, rest_of_line,
)

from error_handling import (
    SchemeParseError, count_unbalanced_parens, create_enhanced_parser_with_errors,
)

# Enable packrat parsing for performance
ParserElement.enable_packrat()


SYMBOL = "SYMBOL"
NUMBER = "NUMBER"
RATIONAL = "RATIONAL"
STRING = "STRING"
BOOLEAN = "BOOLEAN"
LIST = "LIST"


@dataclass(frozen=True)
class SourceSpan:
    """Source location of a datum"""
    filename: str
    start_line: int
    start_col: int
    text: str = ""

    def __str__(self) -> str:
        return f"{self.filename}:{self.start_line}:{self.start_col}"


@dataclass(frozen=True)
class SyntaxNode:
    """Raw syntax tree node handed to the analyzer.

    type is one of SYMBOL, NUMBER, RATIONAL, STRING, BOOLEAN, LIST.
    value holds the symbol name, int, (numerator, denominator), str or bool;
    LIST nodes keep their elements in children.
    """
    type: str
    value: Any = None
    children: List['SyntaxNode'] = field(default_factory=list)
    span: Optional[SourceSpan] = None

    @property
    def is_symbol(self) -> bool:
        return self.type == SYMBOL

    @property
    def is_list(self) -> bool:
        return self.type == LIST

    def __str__(self) -> str:
        if self.type == LIST:
            return "(" + " ".join(str(child) for child in self.children) + ")"
        if self.type == RATIONAL:
            return f"{self.value[0]}/{self.value[1]}"
        if self.type == BOOLEAN:
            return "#t" if self.value else "#f"
        if self.type == STRING:
            return repr(self.value)
        return str(self.value)


def make_symbol_syntax(name: str, span: Optional[SourceSpan] = None) -> SyntaxNode:
    return SyntaxNode(SYMBOL, name, [], span)


def make_list_syntax(children: List[SyntaxNode], span: Optional[SourceSpan] = None) -> SyntaxNode:
    return SyntaxNode(LIST, None, list(children), span)


# Characters that end an atom
DELIMITER_LOOKAHEAD = r'(?=[\s()";]|$)'


class SchemeGrammar:
    """Scheme datum grammar using pyparsing"""

    def __init__(self, debug: bool = False, filename: str = "<input>"):
        self.debug = debug
        self.filename = filename
        self._setup_grammar()

    def _span(self, s: str, loc: int, text: str = "") -> SourceSpan:
        return SourceSpan(self.filename, lineno(loc, s), col(loc, s), text)

    def _setup_grammar(self):
        """Setup the datum grammar"""

        datum = Forward()

        def atom_action(node_type, convert):
            def action(s, loc, tokens):
                text = tokens[0]
                return SyntaxNode(node_type, convert(text), [], self._span(s, loc, text))
            return action

        def parse_rational(text):
            numerator, denominator = text.split('/')
            return (int(numerator), int(denominator))

        # Literals
        string_literal = QuotedString('"', esc_char='\\', multiline=True, unquote_results=False)
        string_literal.set_parse_action(atom_action(STRING, self._process_string))

        boolean = Regex(r'#[tf]' + DELIMITER_LOOKAHEAD)
        boolean.set_parse_action(atom_action(BOOLEAN, lambda text: text == '#t'))

        rational = Regex(r'[+-]?\d+/\d+' + DELIMITER_LOOKAHEAD)
        rational.set_parse_action(atom_action(RATIONAL, parse_rational))

        integer = Regex(r'[+-]?\d+' + DELIMITER_LOOKAHEAD)
        integer.set_parse_action(atom_action(NUMBER, int))

        # Anything else up to a delimiter is a symbol; the analyzer decides
        # whether it is a legal variable name
        symbol = Regex(r"[^\s()\";']+")
        symbol.set_parse_action(atom_action(SYMBOL, str))

        # 'datum => (quote datum)
        def quote_action(s, loc, tokens):
            span = self._span(s, loc, "'")
            return make_list_syntax([make_symbol_syntax("quote", span), tokens[0]], span)

        quoted = (Suppress("'") + datum).set_parse_action(quote_action)

        def list_action(s, loc, tokens):
            return make_list_syntax(list(tokens[0]), self._span(s, loc, "("))

        list_expr = Group(Suppress("(") + ZeroOrMore(datum) + Suppress(")"))
        list_expr.set_parse_action(list_action)

        datum <<= string_literal | boolean | rational | integer | quoted | list_expr | symbol

        comment = ';' + rest_of_line

        self.datum = datum
        self.program = ZeroOrMore(datum) + StringEnd()
        self.expression = datum + StringEnd()
        self.program.ignore(comment)
        self.expression.ignore(comment)

    @staticmethod
    def _process_string(text: str) -> str:
        """Strip the quotes and process escape sequences"""
        escape_map = {
            'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"',
            '0': '\0', 'a': '\a', 'b': '\b', 'f': '\f', 'v': '\v'
        }

        s = text[1:-1]
        result = []
        i = 0
        while i < len(s):
            if s[i] == '\\' and i + 1 < len(s):
                next_char = s[i + 1]
                # Unknown escapes keep the escaped character
                result.append(escape_map.get(next_char, next_char))
                i += 2
            else:
                result.append(s[i])
                i += 1

        return ''.join(result)

    def parse_program(self, text: str, filename: Optional[str] = None) -> List[SyntaxNode]:
        """Parse every top-level datum in `text`"""
        if filename is not None:
            self.filename = filename
        parse = create_enhanced_parser_with_errors(self.program.parse_string, text, self.filename)
        result = parse(text, parse_all=True)
        nodes = list(result)
        if self.debug:
            print(f"Parsed {len(nodes)} top-level forms from {self.filename}")
        return nodes

    def parse_expression(self, text: str, filename: Optional[str] = None) -> SyntaxNode:
        """Parse exactly one datum"""
        if filename is not None:
            self.filename = filename
        parse = create_enhanced_parser_with_errors(self.expression.parse_string, text, self.filename)
        result = parse(text, parse_all=True)
        return result[0]


class SchemeParser:
    """Main Scheme reader"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = SchemeGrammar(debug)

    def parse_file(self, filepath: str) -> List[SyntaxNode]:
        """Parse a Scheme source file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read()
        except UnicodeDecodeError as e:
            raise SchemeParseError(f"Cannot decode file {filepath}: {e}", filename=filepath)
        return self.grammar.parse_program(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> List[SyntaxNode]:
        """Parse Scheme source code from string"""
        return self.grammar.parse_program(text, filename)

    def parse_expression(self, text: str, filename: str = "<input>") -> SyntaxNode:
        """Parse a single datum"""
        return self.grammar.parse_expression(text, filename)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> SchemeParser:
    """Create a Scheme reader"""
    return SchemeParser(debug=debug)


def create_debug_parser() -> SchemeParser:
    """Create a Scheme reader with debug enabled"""
    return SchemeParser(debug=True)


def paren_depth(text: str) -> int:
    """Open parentheses still waiting for a ')' (used for REPL continuation lines)"""
    return count_unbalanced_parens(text)


# Utility functions for working with syntax trees
def pretty_print_syntax(node: SyntaxNode, indent: int = 0) -> str:
    """Pretty print a syntax node for debugging"""
    result = "  " * indent + node.type
    if node.value is not None:
        result += f"({node.value!r})"
    result += "\n"

    for child in node.children:
        result += pretty_print_syntax(child, indent + 1)

    return result


def syntax_to_dict(node: SyntaxNode) -> Dict[str, Any]:
    """Convert a syntax node to dictionary representation"""
    return {
        "type": node.type,
        "value": node.value,
        "span": {
            "filename": node.span.filename,
            "start_line": node.span.start_line,
            "start_col": node.span.start_col,
        } if node.span else None,
        "children": [syntax_to_dict(child) for child in node.children]
    }
