"""
Test configuration for the Scheme reader, analyzer and interpreter tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser
from interpreter import create_interpreter


@pytest.fixture
def parser():
  """Provide a fresh reader for each test"""
  return create_parser()


@pytest.fixture
def interp():
  """Provide a fresh interpreter (empty global environment) for each test"""
  return create_interpreter()


@pytest.fixture
def run(interp):
  """Evaluate source text and return the external representation of the last value"""
  from values import show_value

  def _run(text):
    return show_value(interp.eval_string(text))
  return _run
