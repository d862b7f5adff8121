"""Identifier and timestamp utilities."""

from __future__ import annotations

import time
import uuid

DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def generate_session_id() -> str:
  """Return a new research session identifier."""
  return str(uuid.uuid4())


def generate_request_id() -> str:
  """Return a short identifier used to correlate request logs."""
  return uuid.uuid4().hex[:12]


def utc_timestamp() -> str:
  """Return the current UTC time in the persisted timestamp format."""
  return time.strftime(DATE_FORMAT, time.gmtime())
