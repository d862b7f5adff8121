from __future__ import annotations

import pytest

from research_engine.research.errors import InvalidInputError
from research_engine.research.inputs import normalize_business_input, normalize_task_ids, split_location
from research_engine.research.models import DEFAULT_TASK_IDS, BusinessInput, TaskId
from research_engine.research.payloads import PayloadError, resolve_result_key, validate_payload


def test_normalize_strips_fields_and_drops_blank_list_items() -> None:
  business = normalize_business_input(
    business_name="  Acme Plumbing ",
    website=" https://acmeplumbing.example ",
    city=" Austin ",
    state="TX",
    service_areas=["Round Rock", " ", "Cedar Park "],
    primary_services=["Drain cleaning", ""],
    industry="   ",
  )
  assert business.business_name == "Acme Plumbing"
  assert business.website == "https://acmeplumbing.example"
  assert business.city == "Austin"
  assert business.service_areas == ("Round Rock", "Cedar Park")
  assert business.primary_services == ("Drain cleaning",)
  assert business.industry is None


@pytest.mark.parametrize(
  ("business_name", "website", "message"),
  [
    (None, "https://acme.example", "Business name is required."),
    ("  ", "https://acme.example", "Business name is required."),
    ("Acme", None, "Website URL is required."),
    ("Acme", "acme.example", "Invalid website URL format."),
    ("Acme", "ftp://acme.example", "Invalid website URL format."),
  ],
)
def test_normalize_rejects_unusable_identifying_fields(business_name: str | None, website: str | None, message: str) -> None:
  with pytest.raises(InvalidInputError, match=message):
    normalize_business_input(business_name=business_name, website=website)


def test_location_fallback_only_without_structured_fields() -> None:
  business = normalize_business_input(business_name="Acme", website="https://acme.example", location="Denver, CO")
  assert (business.city, business.state) == ("Denver", "CO")

  business = normalize_business_input(business_name="Acme", website="https://acme.example", city="Boulder", location="Denver, CO")
  assert (business.city, business.state) == ("Boulder", None)


def test_split_location() -> None:
  assert split_location("Portland") == ("Portland", None)
  assert split_location(" Portland , OR ") == ("Portland", "OR")
  assert split_location("  ") == (None, None)


def test_business_location_label() -> None:
  assert BusinessInput(business_name="Acme", website="https://acme.example", city="Austin", state="TX").location == "Austin, TX"
  assert BusinessInput(business_name="Acme", website="https://acme.example").location == "United States"


def test_business_input_dict_round_trip_keeps_tuples() -> None:
  business = BusinessInput(business_name="Acme", website="https://acme.example", service_areas=("Austin",))
  payload = business.to_dict()
  assert payload["service_areas"] == ["Austin"]
  assert BusinessInput.from_dict(payload) == business


def test_normalize_task_ids() -> None:
  assert normalize_task_ids(None) == DEFAULT_TASK_IDS
  assert normalize_task_ids([" SEO ", "gbp", TaskId.SEO]) == (TaskId.SEO, TaskId.GBP)
  with pytest.raises(InvalidInputError, match="At least one task"):
    normalize_task_ids([])
  with pytest.raises(InvalidInputError, match="Unknown task id: reviews"):
    normalize_task_ids(["reviews"])


def test_validate_payload_returns_camel_case_json() -> None:
  payload = validate_payload(TaskId.SITEMAP, {"totalPages": 4, "pageTypes": {"blog": 2}})
  assert payload["totalPages"] == 4
  assert payload["hasBlog"] is False
  assert payload["pageTypes"] == {"blog": 2}


def test_validate_payload_keeps_provider_extras() -> None:
  payload = validate_payload(TaskId.GBP, {"name": "Acme", "openingHours": ["Mon 8-5"]})
  assert payload["openingHours"] == ["Mon 8-5"]


def test_validate_payload_rejects_out_of_range_score() -> None:
  with pytest.raises(PayloadError):
    validate_payload(TaskId.SEO, {"score": 140})


def test_validate_payload_requires_list_for_competitors() -> None:
  with pytest.raises(PayloadError):
    validate_payload(TaskId.COMPETITORS, {"name": "Rival"})
  assert validate_payload(TaskId.CITATIONS, []) == []


def test_resolve_result_key_aliases() -> None:
  assert resolve_result_key("seoAudit") is TaskId.SEO
  assert resolve_result_key("websiteCrawl") is TaskId.WEBSITE
  assert resolve_result_key("citations") is TaskId.CITATIONS
  assert resolve_result_key("metadata") is None
