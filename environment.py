"""
Scheme runtime environments
A chain of mutable frames shared by reference between closures
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple


# ============================================================================
# DATA STRUCTURES
# ============================================================================

def make_runtime_env(parent: Optional[Dict] = None, bindings: Optional[Dict] = None) -> Dict:
  """Create a new frame on top of `parent`"""
  return {
      'parent': parent,
      'bindings': dict(bindings) if bindings else {}
  }


def iter_frames(env: Optional[Dict]) -> Iterator[Dict]:
  """Yield frames from innermost outward"""
  frame = env
  while frame is not None:
    yield frame
    frame = frame['parent']


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def env_find(env: Optional[Dict], name: str) -> Optional[Dict]:
  """Look up a value in the environment chain; None when unbound"""
  for frame in iter_frames(env):
    if name in frame['bindings']:
      return frame['bindings'][name]
  return None


def env_contains(env: Optional[Dict], name: str) -> bool:
  return any(name in frame['bindings'] for frame in iter_frames(env))


def env_extend(env: Optional[Dict], bindings: Dict) -> Dict:
  """Return a new environment with one extra innermost frame holding `bindings`.

  The argument environment is left untouched, so several extensions of the
  same base are independent of each other.
  """
  return make_runtime_env(env, bindings)


def env_modify(env: Dict, name: str, value: Dict) -> None:
  """Overwrite the slot of the nearest frame binding `name`.

  Callers check that the name exists first; a missing name is a bug in the
  caller and raises KeyError.
  """
  for frame in iter_frames(env):
    if name in frame['bindings']:
      frame['bindings'][name] = value
      return
  raise KeyError(name)


def env_define(env: Dict, name: str, value: Dict) -> None:
  """Add (or overwrite) a binding in the innermost frame"""
  env['bindings'][name] = value


def env_user_bindings(env: Optional[Dict]) -> List[Tuple[str, Any]]:
  """Visible bindings, innermost first, shadowed names omitted"""
  seen = set()
  result = []
  for frame in iter_frames(env):
    for name, value in frame['bindings'].items():
      if name not in seen:
        seen.add(name)
        result.append((name, value))
  return result
