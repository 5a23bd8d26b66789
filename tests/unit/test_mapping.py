"""Tests for label-to-code payload transforms."""

import logging

import pytest

from intakeflow.contracts import (
    IdentitySection,
    IndustrySelection,
    ServiceSelection,
    TechnologySelection,
)
from intakeflow.errors import UnmappedLabelError, ValidationFailure
from intakeflow.mapping import (
    identity_payload,
    industries_payload,
    services_payload,
    technologies_payload,
    timeline_payload,
)


def test_identity_payload_omits_blank_optionals():
    payload = identity_payload(
        IdentitySection(
            full_name=" Ada Lovelace ",
            business_email="ada@example.com",
            company_name="Engines Ltd",
            phone_number="  ",
            company_website="https://engines.test",
        )
    )
    assert payload["fullName"] == "Ada Lovelace"
    assert payload["companyWebsite"] == "https://engines.test"
    assert "phoneNumber" not in payload
    assert "businessAddress" not in payload


def test_services_payload_maps_categories():
    payload = services_payload(
        [ServiceSelection(category="Web Development", services=["Shop", "Blog"])]
    )
    assert payload == [{"name": "WEB_DEVELOPMENT", "childServices": ["Shop", "Blog"]}]


def test_industries_grouped_by_category():
    payload = industries_payload(
        [
            IndustrySelection(category="Technology", industry="SaaS"),
            IndustrySelection(category="Technology", industry="IoT"),
            IndustrySelection(category="Healthcare"),
        ]
    )
    assert payload == [
        {"category": "TECHNOLOGY", "subIndustries": ["SAAS", "IOT"]},
        {"category": "HEALTHCARE", "subIndustries": []},
    ]


def test_technology_codes_mapped():
    payload = technologies_payload(
        [TechnologySelection(category="Frontend Technologies", technologies=["React", "SVELTE"])]
    )
    assert payload == [{"category": "FRONTEND", "technologies": ["REACT", "SVELTE"]}]


def test_unmapped_label_passes_through_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="intakeflow.mapping"):
        payload = technologies_payload(
            [TechnologySelection(category="Frontend Technologies", technologies=["Elm"])]
        )
    assert payload[0]["technologies"] == ["Elm"]
    assert "Elm" in caplog.text


def test_unmapped_label_rejected_in_strict_mode():
    with pytest.raises(UnmappedLabelError) as exc_info:
        services_payload([ServiceSelection(category="Astrology")], strict=True)
    assert isinstance(exc_info.value, ValidationFailure)
    assert exc_info.value.label == "Astrology"


def test_timeline_payload_and_fallback():
    assert timeline_payload("fast-track") == {
        "option": "FAST_TRACK",
        "rushFeePercent": 50,
        "estimatedDays": 20,
    }
    assert timeline_payload("whenever")["option"] == "STANDARD"
