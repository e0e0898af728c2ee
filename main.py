"""
Scheme - Main Entry Point
Script runner, interactive REPL and debugging modes
"""

import sys
import argparse
from pathlib import Path
from typing import Callable, List, Optional
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from error_handling import SchemeParseError, SchemeRuntimeError
from parsing import create_parser, create_debug_parser, pretty_print_syntax, paren_depth
from semantics import PRIMITIVES, RESERVED_WORDS, create_analyzer, create_debug_analyzer, pretty_print_ast
from interpreter import SchemeInterpreter, create_interpreter, create_debug_interpreter
from environment import env_user_bindings
from values import VOID, TERMINATE, show_value


VERSION = "scheme-core 0.1.0"
PROMPT = "scheme> "
CONTINUATION_PROMPT = "...     "
HISTORY_FILE = "~/.scheme_history"
HISTORY_LENGTH = 1000
DEFAULT_RECURSION_LIMIT = 10000


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='Scheme - analyzer and evaluator for a small Scheme dialect',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.scm             # Run a Scheme script
  %(prog)s --echo script.scm      # Run and print every non-void result
  %(prog)s -i                     # Interactive mode
  %(prog)s --parse script.scm     # Parse and show syntax trees
  %(prog)s --analyze script.scm   # Parse, analyze and show expression trees
  %(prog)s --debug script.scm     # Run with debug output
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Scheme script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--echo',
      action='store_true',
      help='Print the value of every top-level form of a script'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show syntax trees (for debugging)'
  )

  parser.add_argument(
      '--analyze',
      action='store_true',
      help='Parse and analyze file, show expression trees (for debugging)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--recursion-limit',
      type=int,
      default=DEFAULT_RECURSION_LIMIT,
      metavar='N',
      help=f'Python recursion limit for deeply recursive programs (default {DEFAULT_RECURSION_LIMIT})'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def report_file_error(script_path: str, error: Exception) -> None:
  """Print a message for errors raised while opening a script"""
  if isinstance(error, FileNotFoundError):
    print(f"Error: Script file '{script_path}' not found")
    print(f"  Hint: Check the file path and make sure the file exists")
  elif isinstance(error, PermissionError):
    print(f"Error: Permission denied reading '{script_path}'")
    print(f"  Hint: Make sure you have read permissions for this file")
  else:
    print(f"Error: Cannot decode file '{script_path}': {error}")
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding")


def parse_file(script_path: str, debug: bool = False) -> int:
  """Parse a Scheme script file and show the syntax trees"""
  parser = create_debug_parser() if debug else create_parser()
  try:
    print(f"Parsing {script_path}...")
    nodes = parser.parse_file(script_path)
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as e:
    report_file_error(script_path, e)
    return 1
  except SchemeParseError as e:
    print(f"Parse error in '{script_path}': {e}")
    return 1

  print(f"\nParsed {len(nodes)} top-level forms:")
  print("=" * 50)
  for i, node in enumerate(nodes, 1):
    print(f"\nForm {i}: {node}")
    print(pretty_print_syntax(node))
  return 0


def analyze_file(script_path: str, debug: bool = False) -> int:
  """Parse and analyze a Scheme script file and show the expression trees.

  Forms are analyzed without being run, so names defined at top level are
  not yet bound when later forms are analyzed.
  """
  parser = create_debug_parser() if debug else create_parser()
  analyzer = create_debug_analyzer() if debug else create_analyzer()
  try:
    print(f"Parsing and analyzing {script_path}...")
    nodes = parser.parse_file(script_path)
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as e:
    report_file_error(script_path, e)
    return 1
  except SchemeParseError as e:
    print(f"Parse error in '{script_path}': {e}")
    return 1

  print(f"\nParsed {len(nodes)} top-level forms:")
  print("=" * 50)
  status = 0
  for i, node in enumerate(nodes, 1):
    print(f"\nForm {i}: {node}")
    try:
      print(pretty_print_ast(analyzer.analyze(node)))
    except SchemeRuntimeError as e:
      print(f"{e}")
      status = 1
  return status


def run_script_file(script_path: str, debug: bool = False, echo: bool = False) -> int:
  """Run a Scheme script; stops at the first error or at (exit)"""
  interpreter = create_debug_interpreter() if debug else create_interpreter()
  try:
    nodes = interpreter.parser.parse_file(script_path)
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as e:
    report_file_error(script_path, e)
    return 1
  except SchemeParseError as e:
    print(f"Parse error in '{script_path}': {e}")
    return 1

  if debug:
    print(f"Parsed {len(nodes)} top-level forms")

  for node in nodes:
    try:
      value = interpreter.eval_syntax(node)
    except SchemeRuntimeError as e:
      sys.stdout.flush()
      print(f"\n{e}")
      return 1
    except RecursionError:
      print(f"\nRuntime error: maximum recursion depth exceeded while evaluating {node}")
      print(f"  Hint: Raise the limit with --recursion-limit (currently {sys.getrecursionlimit()})")
      return 1

    if value['type'] == TERMINATE:
      break
    if echo and value['type'] != VOID:
      print(show_value(value))
  return 0


# ============================================================================
# INTERACTIVE MODE
# ============================================================================

REPL_COMMANDS = [":parse", ":analyze", ":env", ":help"]


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser(HISTORY_FILE)
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First time, no history yet

  readline.set_history_length(HISTORY_LENGTH)

  completions = sorted(RESERVED_WORDS) + sorted(PRIMITIVES) + REPL_COMMANDS + ["else"]

  def completer(text, state):
    options = [word for word in completions if word.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.set_completer_delims(" \t\n()'\"")
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(lambda: readline.write_history_file(history_file))


def read_form(read_line: Callable[[str], str] = input) -> str:
  """Read one line, then continuation lines while parentheses are unbalanced"""
  text = read_line(PROMPT)
  while paren_depth(text) > 0:
    text += "\n" + read_line(CONTINUATION_PROMPT)
  return text


def show_help() -> None:
  print("REPL Commands:")
  print("  :parse <expr>     - Show the syntax tree")
  print("  :analyze <expr>   - Show the expression tree")
  print("  :env              - Show user bindings")
  print("  :help             - Show this help")
  print("  (exit)            - Exit REPL")
  print()
  print("Special forms: " + " ".join(sorted(RESERVED_WORDS)))
  print("Primitives:    " + " ".join(sorted(PRIMITIVES)))


def show_env(interpreter: SchemeInterpreter) -> None:
  bindings = env_user_bindings(interpreter.global_env)
  if not bindings:
    print("  (no user-defined bindings)")
    return
  for name, value in sorted(bindings):
    val_str = show_value(value)
    if len(val_str) > 60:
      val_str = val_str[:57] + "..."
    print(f"  {name} = {val_str}")


def handle_repl_input(interpreter: SchemeInterpreter, code: str) -> bool:
  """Run one REPL entry; returns False when the session should end"""
  stripped = code.strip()
  if not stripped:
    return True

  if stripped.startswith(":parse"):
    node = interpreter.parser.parse_expression(stripped[len(":parse"):].strip())
    print(pretty_print_syntax(node), end='')
    return True

  if stripped.startswith(":analyze"):
    node = interpreter.parser.parse_expression(stripped[len(":analyze"):].strip())
    print(pretty_print_ast(interpreter.analyze_syntax(node)), end='')
    return True

  if stripped == ":env":
    print("Current environment:")
    show_env(interpreter)
    return True

  if stripped == ":help":
    show_help()
    return True

  for node in interpreter.parser.parse_string(code):
    value = interpreter.eval_syntax(node)
    if value['type'] == TERMINATE:
      return False
    if value['type'] != VOID:
      print(show_value(value))
  return True


def run_interactive_mode(debug: bool = False,
                         read_line: Optional[Callable[[str], str]] = None) -> None:
  """Run the REPL until (exit), EOF or Ctrl-C"""
  print(f"{VERSION} - Interactive Mode")
  print("Type (exit) to quit, :help for commands")
  if debug:
    print("Debug mode enabled")
  print()

  if read_line is None:
    setup_readline()
    read_line = input

  interpreter = create_debug_interpreter() if debug else create_interpreter()

  while True:
    try:
      code = read_form(read_line)
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    try:
      if not handle_repl_input(interpreter, code):
        break
    except SchemeParseError as e:
      print(f"{e}")
    except SchemeRuntimeError as e:
      sys.stdout.flush()
      print(f"\n{e}")
    except RecursionError:
      print("\nRuntime error: maximum recursion depth exceeded")
    except KeyboardInterrupt:
      print("\nInterrupted")


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point for the scheme command"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  sys.setrecursionlimit(max(args.recursion_limit, 1000))

  if args.script:
    if not Path(args.script).exists():
      print(f"Error: Script file '{args.script}' does not exist")
      sys.exit(1)

    if args.parse:
      status = parse_file(args.script, debug=args.debug)
    elif args.analyze:
      status = analyze_file(args.script, debug=args.debug)
    else:
      status = run_script_file(args.script, debug=args.debug, echo=args.echo)
    if status:
      sys.exit(status)

  elif args.interactive:
    run_interactive_mode(debug=args.debug)

  else:
    arg_parser.print_help()


if __name__ == "__main__":
  main()
