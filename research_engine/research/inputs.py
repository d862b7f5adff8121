"""Normalization and validation of session creation input."""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlparse

from research_engine.research.errors import InvalidInputError
from research_engine.research.models import DEFAULT_TASK_IDS, BusinessInput, TaskId


def _clean(value: str | None) -> str | None:
  if value is None:
    return None
  stripped = value.strip()
  return stripped or None


def _clean_list(values: Iterable[str] | None) -> tuple[str, ...]:
  return tuple(item.strip() for item in values or () if item and item.strip())


def split_location(location: str | None) -> tuple[str | None, str | None]:
  """Split a free-text "City, ST" locality into city and state."""
  cleaned = _clean(location)
  if cleaned is None:
    return None, None
  parts = [part.strip() for part in cleaned.split(",") if part.strip()]
  if len(parts) >= 2:
    return parts[0], parts[1]
  return cleaned, None


def normalize_business_input(
  *,
  business_name: str | None,
  website: str | None,
  city: str | None = None,
  state: str | None = None,
  location: str | None = None,
  service_areas: Iterable[str] | None = None,
  industry: str | None = None,
  primary_services: Iterable[str] | None = None,
  gbp_url: str | None = None,
) -> BusinessInput:
  """Build a BusinessInput, raising InvalidInputError when identifying fields are unusable."""
  name = _clean(business_name)
  if name is None:
    raise InvalidInputError("Business name is required.")

  site = _clean(website)
  if site is None:
    raise InvalidInputError("Website URL is required.")

  parsed = urlparse(site)
  if parsed.scheme not in {"http", "https"} or not parsed.netloc:
    raise InvalidInputError("Invalid website URL format.")

  clean_city = _clean(city)
  clean_state = _clean(state)
  # Only fall back to the free-text location when neither structured field is present.
  if clean_city is None and clean_state is None:
    clean_city, clean_state = split_location(location)

  return BusinessInput(
    business_name=name,
    website=site,
    city=clean_city,
    state=clean_state,
    service_areas=_clean_list(service_areas),
    industry=_clean(industry),
    primary_services=_clean_list(primary_services),
    gbp_url=_clean(gbp_url),
  )


def normalize_task_ids(raw: Iterable[str | TaskId] | None) -> tuple[TaskId, ...]:
  """Resolve the declared task universe, preserving order and dropping duplicates."""
  if raw is None:
    return DEFAULT_TASK_IDS

  resolved: list[TaskId] = []
  for item in raw:
    task_id = item if isinstance(item, TaskId) else TaskId.parse(str(item))
    if task_id is None:
      raise InvalidInputError(f"Unknown task id: {item}")
    if task_id not in resolved:
      resolved.append(task_id)

  if not resolved:
    raise InvalidInputError("At least one task must be declared.")
  return tuple(resolved)
