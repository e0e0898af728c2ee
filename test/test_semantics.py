"""
Analyzer tests
Head resolution, form validation and identifier checks
"""

import pytest
from semantics import (
  PRIMITIVES, PRIMITIVE_ARITY, RESERVED_WORDS,
  analyze_syntax, analyze_program, create_analyzer, create_debug_analyzer, pretty_print_ast,
)
from environment import make_runtime_env, env_extend
from values import make_integer
from error_handling import (
  SchemeAnalysisError, SchemeRuntimeError, MALFORMED_SYNTAX, INVALID_IDENTIFIER,
)


@pytest.fixture
def analyze(parser):
  def _analyze(text, env=None):
    return analyze_syntax(parser.parse_expression(text), env)
  return _analyze


class TestTables:
  """Test the primitive and keyword tables"""

  def test_tables_are_read_only(self):
    with pytest.raises(TypeError):
      PRIMITIVES["foo"] = "FOO"
    with pytest.raises(TypeError):
      RESERVED_WORDS["foo"] = "FOO"

  def test_every_primitive_has_an_arity(self):
    assert set(PRIMITIVES.values()) == set(PRIMITIVE_ARITY)

  def test_keywords(self):
    assert set(RESERVED_WORDS) == {"quote", "if", "lambda", "define", "begin", "cond", "let",
                                   "letrec", "set!"}


class TestAtoms:
  """Test atom analysis"""

  def test_literals(self, analyze):
    assert analyze("5")['type'] == "FIXNUM"
    assert analyze("1/3")['type'] == "RATIONAL_NUM"
    assert analyze('"s"')['type'] == "STRING"
    assert analyze("#t")['type'] == "TRUE"
    assert analyze("#f")['type'] == "FALSE"

  def test_variable(self, analyze):
    node = analyze("foo")
    assert node['type'] == "VAR"
    assert node['value'] == "foo"

  def test_empty_list_is_quoted(self, analyze):
    assert analyze("()")['type'] == "QUOTE"

  @pytest.mark.parametrize("name", ["1x", ".5", "-1.5e3", "1e5x", "a#b", "@x", "."])
  def test_invalid_identifiers(self, analyze, name):
    with pytest.raises(SchemeAnalysisError) as exc_info:
      analyze(name)
    assert exc_info.value.kind == INVALID_IDENTIFIER

  def test_invalid_identifier_in_binding_position(self, analyze):
    with pytest.raises(SchemeAnalysisError) as exc_info:
      analyze("(lambda (1x) 1)")
    assert exc_info.value.kind == INVALID_IDENTIFIER

  def test_analysis_error_is_a_runtime_error(self):
    assert issubclass(SchemeAnalysisError, SchemeRuntimeError)
    assert issubclass(SchemeRuntimeError, RuntimeError)


class TestHeadResolution:
  """Test bound variable / primitive / keyword / free application"""

  def test_primitive_nodes(self, analyze):
    assert analyze("(car x)")['type'] == "UNARY"
    assert analyze("(cons 1 2)")['type'] == "BINARY"
    node = analyze("(+ 1 2 3)")
    assert node['type'] == "VARIADIC"
    assert node['value'] == {'op': "ADD", 'name': "+"}
    assert len(node['children']) == 3

  def test_and_or_void_exit(self, analyze):
    assert analyze("(and 1 2)")['type'] == "AND"
    assert analyze("(or)")['type'] == "OR"
    assert analyze("(void)")['type'] == "MAKE_VOID"
    assert analyze("(exit)")['type'] == "EXIT"

  def test_free_application(self, analyze):
    node = analyze("(f 1 2)")
    assert node['type'] == "APPLY"
    assert [child['type'] for child in node['children']] == ["VAR", "FIXNUM", "FIXNUM"]

  def test_non_symbol_head_is_application(self, analyze):
    node = analyze("((lambda (x) x) 1)")
    assert node['type'] == "APPLY"
    assert node['children'][0]['type'] == "LAMBDA"

  def test_bound_name_shadows_keyword(self, analyze):
    env = env_extend(make_runtime_env(), {"if": make_integer(1)})
    assert analyze("(if 1 2 3)", env)['type'] == "APPLY"

  def test_bound_name_shadows_primitive(self, analyze):
    env = env_extend(make_runtime_env(), {"car": make_integer(1)})
    assert analyze("(car 1)", env)['type'] == "APPLY"

  def test_parameter_shadows_primitive_in_body(self, analyze):
    node = analyze("(lambda (list) (list 1 2))")
    assert node['children'][0]['type'] == "APPLY"

  def test_define_shorthand_parameters_are_visible(self, analyze):
    node = analyze("(define (f if) (if 1))")
    body = node['children'][0]['children'][0]
    assert body['type'] == "APPLY"

  def test_let_names_visible_in_body_only(self, analyze):
    node = analyze("(let ((car 1)) (car 2))")
    assert node['children'][0]['type'] == "APPLY"
    node = analyze("(let ((car (lambda (x) x))) 1)")
    assert node['value']['bindings'][0][1]['type'] == "LAMBDA"
    node = analyze("(let ((f (car 1))) f)")
    assert node['value']['bindings'][0][1]['type'] == "UNARY"

  def test_letrec_names_visible_in_inits(self, analyze):
    node = analyze("(letrec ((car (lambda () (car)))) 1)")
    lam = node['value']['bindings'][0][1]
    assert lam['children'][0]['type'] == "APPLY"


class TestArity:
  """Primitive arity checks happen at analysis time"""

  @pytest.mark.parametrize("text", [
    "(car)", "(car 1 2)", "(cons 1)", "(modulo 1 2 3)", "(exit 1)", "(void 1)",
    "(-)", "(/)", "(display)", "(eq? 1)",
  ])
  def test_bad_primitive_arity(self, analyze, text):
    with pytest.raises(SchemeAnalysisError) as exc_info:
      analyze(text)
    assert exc_info.value.kind == MALFORMED_SYNTAX

  @pytest.mark.parametrize("text", ["(+)", "(*)", "(<)", "(list)", "(and)", "(- 1)", "(/ 2)"])
  def test_variadic_accepts(self, analyze, text):
    analyze(text)


class TestSpecialForms:
  """Test special-form shape validation"""

  @pytest.mark.parametrize("text", [
    "(quote)", "(quote 1 2)",
    "(if 1)", "(if 1 2 3 4)",
    "(lambda (x))", "(lambda x 1)", "(lambda (1) 1)", "(lambda (x (y)) 1)",
    "(define)", "(define x)", "(define (f x))", "(define () 1)", "(define 5 1)",
    "(cond)", "(cond ())", "(cond 1)",
    "(let ((x 1)))", "(let (x) 1)", "(let ((x)) 1)", "(let x 1)",
    "(letrec ((x 1 2)) x)",
    "(set! x)", "(set! 1 2)", "(set! x 1 2)",
  ])
  def test_malformed_forms(self, analyze, text):
    with pytest.raises(SchemeAnalysisError) as exc_info:
      analyze(text)
    assert exc_info.value.kind == MALFORMED_SYNTAX

  def test_if_without_alternative(self, analyze):
    node = analyze("(if 1 2)")
    assert [child['type'] for child in node['children']] == ["FIXNUM", "FIXNUM", "FALSE"]

  def test_lambda_multiple_body_expressions(self, analyze):
    node = analyze("(lambda (x) 1 2)")
    assert node['value'] == {'params': ["x"], 'name': None}
    assert node['children'][0]['type'] == "BEGIN"

  def test_define_shorthand_desugars_to_named_lambda(self, analyze):
    node = analyze("(define (f a b) (+ a b))")
    assert node['type'] == "DEFINE"
    assert node['value'] == "f"
    lam = node['children'][0]
    assert lam['type'] == "LAMBDA"
    assert lam['value'] == {'params': ["a", "b"], 'name': "f"}

  def test_define_names_plain_lambda(self, analyze):
    node = analyze("(define g (lambda (x) x))")
    assert node['children'][0]['value']['name'] == "g"

  def test_define_several_expressions_become_begin(self, analyze):
    node = analyze("(define x 1 2)")
    assert node['value'] == "x"
    body = node['children'][0]
    assert body['type'] == "BEGIN"
    assert [child['value'] for child in body['children']] == [1, 2]

  def test_cond_clauses(self, analyze):
    node = analyze("(cond (1 2 3) (4) (else 5))")
    clauses = node['value']
    assert len(clauses) == 3
    assert len(clauses[0]['body']) == 2
    assert clauses[1]['body'] == []
    assert clauses[2]['test']['type'] == "TRUE"

  def test_cond_else_can_be_a_variable(self, analyze):
    env = env_extend(make_runtime_env(), {"else": make_integer(1)})
    node = analyze("(cond (else 5))", env)
    assert node['value'][0]['test']['type'] == "VAR"

  def test_begin_may_be_empty(self, analyze):
    node = analyze("(begin)")
    assert node['type'] == "BEGIN"
    assert node['children'] == []

  def test_quote_keeps_syntax(self, analyze):
    node = analyze("'(a . b)")
    assert node['type'] == "QUOTE"
    assert str(node['value']) == "(a . b)"

  def test_duplicate_parameters_are_accepted(self, analyze):
    assert analyze("(lambda (x x) x)")['value']['params'] == ["x", "x"]


class TestFactories:
  """Test analyzer factories and helpers"""

  def test_analyze_program(self, parser):
    nodes = analyze_program(parser.parse_string("(define x 1) x"))
    assert [node['type'] for node in nodes] == ["DEFINE", "VAR"]

  def test_analyzer_object(self, parser):
    analyzer = create_analyzer()
    assert analyzer.analyze(parser.parse_expression("x"))['type'] == "VAR"
    assert len(analyzer.analyze_program(parser.parse_string("1 2"))) == 2

  def test_debug_analyzer_traces(self, parser, capsys):
    create_debug_analyzer().analyze(parser.parse_expression("(+ 1 2)"))
    out = capsys.readouterr().out
    assert "Analyzing: LIST (+ 1 2)" in out
    assert "Analyzing: NUMBER 1" in out

  def test_pretty_print_ast(self, analyze):
    text = pretty_print_ast(analyze("(let ((x 1)) (+ x 2))"))
    assert text.splitlines() == [
      "LET",
      "  [x]",
      "    FIXNUM(1)",
      "  VARIADIC(+)",
      "    VAR('x')",
      "    FIXNUM(2)",
    ]
