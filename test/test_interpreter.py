"""
Interpreter tests
End-to-end evaluation of special forms, closures, mutation and quotation
"""

import pytest
from interpreter import (
  eval_ast, eval_program, apply_procedure, syntax_to_value, create_builtin_runtime_env,
  create_debug_interpreter,
)
from semantics import analyze_program
from values import make_integer, make_void, show_value
from error_handling import (
  SchemeRuntimeError, SchemeAnalysisError,
  UNDEFINED_VARIABLE, INVALID_IDENTIFIER, ARITY_MISMATCH, NOT_A_PROCEDURE,
  REDEFINITION_OF_RESERVED, ILLEGAL_QUOTE_STRUCTURE, DIVISION_BY_ZERO, WRONG_TYPE,
)


def error_kind(run, text):
  with pytest.raises(SchemeRuntimeError) as exc_info:
    run(text)
  return exc_info.value.kind


class TestLiterals:
  """Test literal and variable evaluation"""

  def test_literals(self, run):
    assert run("42") == "42"
    assert run("-3/6") == "-3/6"
    assert run('"hi"') == '"hi"'
    assert run("#t") == "#t"
    assert run("(void)") == "#<void>"
    assert run("(exit)") == "#<terminate>"
    assert run("()") == "()"

  def test_rational_literal_with_zero_denominator(self, run):
    assert error_kind(run, "1/0") == DIVISION_BY_ZERO

  def test_undefined_variable(self, run):
    assert error_kind(run, "nope") == UNDEFINED_VARIABLE
    assert error_kind(run, "(nope 1)") == UNDEFINED_VARIABLE

  @pytest.mark.parametrize("text", ["1x", ".5", "a#b", "(define 1x 2)", "(let ((.5 1)) 1)"])
  def test_invalid_identifiers_fail_at_analysis(self, run, text):
    with pytest.raises(SchemeAnalysisError) as exc_info:
      run(text)
    assert exc_info.value.kind == INVALID_IDENTIFIER

  def test_primitive_as_value(self, run):
    assert run("car") == "#<procedure car>"
    assert run("(define (apply2 f a b) (f a b)) (apply2 + 3 4)") == "7"
    assert run("((lambda (op) (op 1 2 3)) list)") == "(1 2 3)"

  def test_primitive_procedure_arity(self, run):
    assert error_kind(run, "((lambda (f) (f 1 2)) car)") == ARITY_MISMATCH
    assert error_kind(run, "((lambda (f) (f)) -)") == ARITY_MISMATCH

  def test_and_or_as_procedures(self, run):
    assert run("((lambda (f) (f 1 2)) and)") == "2"
    assert run("((lambda (f) (f #f 5)) or)") == "#t"


class TestConditionals:
  """Test if, cond, and, or"""

  def test_only_false_is_false(self, run):
    assert run("(if 0 'yes 'no)") == "yes"
    assert run("(if '() 'yes 'no)") == "yes"
    assert run("(if #f 'yes 'no)") == "no"
    assert run("(if #f 1)") == "#f"

  def test_if_evaluates_one_branch(self, run):
    assert run("(if #t 1 (car '()))") == "1"

  def test_cond(self, run):
    assert run("(cond (#f 1) (#f 2))") == "#f"
    assert run("(cond (5))") == "5"
    assert run("(cond (#f 1) (#t 2 3))") == "3"
    assert run("(cond ((= 1 2) 'a) (else 'b))") == "b"

  def test_cond_else_bound_as_variable(self, run):
    assert run("(define else #f) (cond (else 1) (#t 2))") == "2"
    assert run("(let ((else 3)) (cond (else)))") == "3"

  def test_and(self, run):
    assert run("(and)") == "#t"
    assert run("(and 1 2 3)") == "3"
    assert run("(and 1 #f (car '()))") == "#f"

  def test_and_evaluates_operands_once(self, run):
    assert run("""
      (define n 0)
      (and (begin (set! n (+ n 1)) n))
      n
    """) == "1"

  def test_or(self, run):
    assert run("(or)") == "#f"
    assert run("(or 5)") == "#t"
    assert run("(or #f #f)") == "#f"
    assert run("(or #f 7 (car '()))") == "#t"


class TestBindings:
  """Test define, let, letrec, set!"""

  def test_define_returns_void(self, run):
    assert run("(define x 5)") == "#<void>"
    assert run("x") == "5"

  def test_define_shorthand(self, run):
    assert run("(define (square x) (* x x)) (square 7)") == "49"
    assert run("square") == "#<procedure square>"

  def test_recursive_define(self, run):
    assert run("""
      (define (fact n) (if (= n 0) 1 (* n (fact (- n 1)))))
      (fact 10)
    """) == "3628800"

  def test_redefinition_of_reserved(self, run):
    assert error_kind(run, "(define car 1)") == REDEFINITION_OF_RESERVED
    assert error_kind(run, "(define if 1)") == REDEFINITION_OF_RESERVED
    assert error_kind(run, "(define (list x) x)") == REDEFINITION_OF_RESERVED

  def test_redefine_user_name(self, run):
    assert run("(define x 1) (define x 2) x") == "2"

  def test_define_with_several_expressions(self, run):
    assert run('(define x (display "a") (+ 1 2)) x') == "3"

  def test_let_inits_use_outer_scope(self, run):
    assert run("(let ((x 1)) (let ((x 2) (y x)) y))") == "1"

  def test_let_body_sequence(self, run):
    assert run("(let ((x 1)) (set! x 5) x)") == "5"

  def test_letrec_factorial(self, run):
    assert run(
      "(letrec ((f (lambda (n) (if (= n 0) 1 (* n (f (- n 1))))))) (f 5))"
    ) == "120"

  def test_letrec_mutual_recursion(self, run):
    assert run("""
      (letrec ((even? (lambda (n) (if (= n 0) #t (odd? (- n 1)))))
               (odd? (lambda (n) (if (= n 0) #f (even? (- n 1))))))
        (even? 10))
    """) == "#t"

  def test_set(self, run):
    assert run("(define x 1) (set! x 2)") == "#<void>"
    assert run("x") == "2"

  def test_set_undefined(self, run):
    assert error_kind(run, "(set! nope 1)") == UNDEFINED_VARIABLE

  def test_begin(self, run):
    assert run("(begin)") == "#<void>"
    assert run("(begin 1 2 3)") == "3"

  def test_shadowed_keyword(self, run):
    assert run("(define (f if) (if 2)) (f (lambda (x) (* x 10)))") == "20"
    assert run("(let ((list 5)) list)") == "5"


class TestProcedures:
  """Test closures and application"""

  def test_parameter_mutation_is_local_to_call(self, run):
    run("(define (f x) (set! x (+ x 1)) x)")
    assert run("(f 10)") == "11"
    assert run("(f 10)") == "11"

  def test_closure_captures_environment_by_reference(self, run):
    assert run("""
      (define counter
        (let ((n 0))
          (lambda () (set! n (+ n 1)) n)))
      (counter)
      (counter)
    """) == "2"

  def test_closure_sees_later_mutation(self, run):
    assert run("(define y 1) (define (get) y) (set! y 42) (get)") == "42"

  def test_recursive_calls_do_not_interfere(self, run):
    assert run("""
      (define (fib n) (if (< n 2) n (+ (fib (- n 1)) (fib (- n 2)))))
      (fib 15)
    """) == "610"

  def test_arity_mismatch(self, run):
    assert error_kind(run, "((lambda (x y) x) 1)") == ARITY_MISMATCH
    assert error_kind(run, "((lambda () 1) 1)") == ARITY_MISMATCH

  def test_not_a_procedure(self, run):
    assert error_kind(run, "(5 1)") == NOT_A_PROCEDURE
    assert error_kind(run, "(define x 1) (x)") == NOT_A_PROCEDURE

  def test_duplicate_parameters_later_wins(self, run):
    assert run("((lambda (x x) x) 1 2)") == "2"

  def test_apply_procedure_directly(self, interp):
    square = interp.eval_string("(lambda (x) (* x x))")
    assert apply_procedure(square, [make_integer(9)]) == make_integer(81)


class TestQuote:
  """Test quotation and the dotted-pair rule"""

  def test_quote_atoms(self, run):
    assert run("'foo") == "foo"
    assert run("'5") == "5"
    assert run("(quote \"s\")") == '"s"'

  def test_quote_list(self, run):
    assert run("'(1 (2 three) \"four\" #f)") == '(1 (2 three) "four" #f)'
    assert run("(symbol? (car '(a)))") == "#t"

  def test_dotted_pairs(self, run):
    assert run("'(1 . 2)") == "(1 . 2)"
    assert run("'(1 2 . 3)") == "(1 2 . 3)"
    assert run("(cdr '(1 . 2))") == "2"
    assert run("(cdr (cdr '(1 2 . 3)))") == "3"
    assert run("'(1 . (2 3))") == "(1 2 3)"

  @pytest.mark.parametrize("text", ["'(1 .)", "'(. 1)", "'(1 . 2 . 3)", "'(1 . 2 3)", "'(.)"])
  def test_illegal_dots(self, run, text):
    assert error_kind(run, text) == ILLEGAL_QUOTE_STRUCTURE

  def test_quote_is_not_evaluated(self, run):
    assert run("'(car undefined-name)") == "(car undefined-name)"


class TestPairsAndLists:
  """Test mutation and cycles end to end"""

  def test_list_p_on_cycle(self, run):
    assert run("""
      (define c (list 1 2 3))
      (set-cdr! (cdr (cdr c)) c)
      (list? c)
    """) == "#f"
    assert run("(list? (list 1 2))") == "#t"
    assert run("(list? (cons 1 2))") == "#f"

  def test_printing_a_cycle_terminates(self, run):
    run("(define c (list 1 2)) (set-cdr! (cdr c) c)")
    assert run("c") == "(1 2 . ...)"

  def test_eq(self, run):
    assert run("(eq? 'a 'a)") == "#t"
    assert run("(eq? '() '())") == "#t"
    assert run("(eq? (list 1) (list 1))") == "#f"
    assert run("(define p (list 1)) (eq? p p)") == "#t"

  def test_car_of_non_pair(self, run):
    assert error_kind(run, "(car 5)") == WRONG_TYPE


class TestNumbers:
  """Test the numeric tower through the evaluator"""

  def test_unreduced_rationals(self, run):
    assert run("(= 1/2 2/4)") == "#t"
    assert run("(eq? 1/2 2/4)") == "#f"
    assert run("(+ 1/4 1/4)") == "8/16"

  def test_division(self, run):
    assert run("(/ 6 3)") == "2"
    assert run("(/ 1 3)") == "1/3"
    assert run("(* (/ 1 3) 3)") == "3/3"
    assert error_kind(run, "(/ 1 0)") == DIVISION_BY_ZERO

  def test_display(self, run, capsys):
    assert run('(display "hello")') == "#<void>"
    run("(display '(1 \"a\"))")
    assert capsys.readouterr().out == 'hello(1 "a")'


class TestProgram:
  """Test program-level helpers"""

  def test_eval_program_shares_environment(self, parser):
    env = create_builtin_runtime_env()
    asts = analyze_program(parser.parse_string("(define x 2) (* x 21)"), env)
    results = eval_program(asts, env)
    assert [show_value(value) for value in results] == ["#<void>", "42"]

  def test_eval_program_stops_at_exit(self, parser):
    asts = analyze_program(parser.parse_string("1 (exit) 2"))
    results = eval_program(asts)
    assert len(results) == 2
    assert results[-1]['type'] == "Terminate"

  def test_run_source_stops_at_exit(self, interp, capsys):
    results = interp.run_source('(display "a") (exit) (display "b")')
    assert len(results) == 2
    assert capsys.readouterr().out == "a"

  def test_later_forms_see_earlier_definitions(self, interp):
    interp.run_source("(define (if-like x) x)")
    assert show_value(interp.eval_string("(if-like 3)")) == "3"

  def test_empty_source(self, interp):
    assert interp.eval_string("; nothing") == make_void()

  def test_syntax_to_value(self, parser):
    value = syntax_to_value(parser.parse_expression("(a 1/2 . \"s\")"))
    assert show_value(value) == '(a 1/2 . "s")'

  def test_debug_interpreter_traces(self, capsys):
    create_debug_interpreter().eval_string("(+ 1 2)")
    out = capsys.readouterr().out
    assert "Analyzing: LIST (+ 1 2)" in out
    assert "Evaluating: VARIADIC" in out
    assert "Evaluating: FIXNUM" in out

  def test_eval_ast_unknown_node(self):
    with pytest.raises(SchemeRuntimeError):
      eval_ast({'type': "BOGUS", 'value': None, 'children': [], 'span': None},
               create_builtin_runtime_env())
