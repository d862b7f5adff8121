"""Minimal .env support so local runs pick up RESEARCH_* settings."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

_QUOTES = ('"', "'")


def default_env_path() -> Path:
  """Resolve the .env file, honouring RESEARCH_ENV_FILE when set."""
  explicit = os.getenv("RESEARCH_ENV_FILE")
  if explicit:
    return Path(explicit).expanduser()
  return Path(__file__).resolve().parents[2] / ".env"


def iter_env_pairs(text: str) -> Iterator[tuple[str, str]]:
  """Yield (key, value) pairs from dotenv text, skipping comments and junk lines."""
  for line in (raw.strip() for raw in text.splitlines()):
    if not line or line[0] == "#":
      continue
    line = line.removeprefix("export ").lstrip()
    key, sep, value = line.partition("=")
    key, value = key.strip(), value.strip()
    if not sep or not key:
      continue
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
      value = value[1:-1]
    yield key, value


def load_env_file(path: Path, *, override: bool = False) -> int:
  """Copy pairs from ``path`` into os.environ and return how many were applied."""
  if not path.is_file():
    return 0
  applied = 0
  for key, value in iter_env_pairs(path.read_text(encoding="utf-8")):
    if key in os.environ and not override:
      continue
    os.environ[key] = value
    applied += 1
  return applied
