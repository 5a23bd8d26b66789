"""Schema versioning for persisted snapshots.

Version 0 is the browser layout: three versionless keys holding the camelCase
form data, the step index and the visitor id. Version 1 is
:class:`PersistedSnapshot`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from ..constants import (
    LEGACY_CURRENT_STEP_KEY,
    LEGACY_FORM_DATA_KEY,
    LEGACY_VISITOR_ID_KEY,
    SNAPSHOT_SCHEMA_VERSION,
)
from ..errors import SnapshotVersionError
from ..steps import LAST_STEP_INDEX
from .models import PersistedSnapshot

logger = logging.getLogger(__name__)

_IDENTITY_FIELDS = {
    "fullName": "full_name",
    "businessEmail": "business_email",
    "phoneNumber": "phone_number",
    "companyName": "company_name",
    "companyWebsite": "company_website",
    "businessAddress": "business_address",
    "businessType": "business_type",
    "referralSource": "referral_source",
}


def detect_version(raw: Dict[str, Any]) -> int:
    if "schema_version" in raw:
        return int(raw["schema_version"])
    if any(
        key in raw
        for key in (LEGACY_FORM_DATA_KEY, LEGACY_CURRENT_STEP_KEY, LEGACY_VISITOR_ID_KEY)
    ):
        return 0
    return SNAPSHOT_SCHEMA_VERSION


def _legacy_discount(offers: Dict[str, Any]) -> Dict[str, Any]:
    chosen = offers.get("discounts") or []
    if chosen:
        option_id = chosen[0]
    elif offers.get("submitted"):
        option_id = "none"
    else:
        option_id = None
    return {
        "option_id": option_id,
        "applied_percent": int(offers.get("appliedDiscount") or 0) if option_id else 0,
        "submitted": bool(offers.get("submitted")),
    }


def _upgrade_v0(raw: Dict[str, Any]) -> Dict[str, Any]:
    form = raw.get(LEGACY_FORM_DATA_KEY) or {}
    if isinstance(form, str):
        form = json.loads(form)

    identity = {
        snake: (form.get("registerYourself") or {}).get(camel, "") or ""
        for camel, snake in _IDENTITY_FIELDS.items()
    }
    estimate = form.get("estimate") or {}
    price = estimate.get("finalPrice") or {}
    agreement = form.get("agreement") or {}
    proceed = form.get("proceedOptions") or {}

    answers = {
        "identity": identity,
        "services": form.get("services") or [],
        "industries": form.get("industries") or [],
        "technologies": form.get("technologies") or [],
        "features": form.get("features") or [],
        "discount": _legacy_discount(form.get("specialOffers") or {}),
        "estimate": {
            "accepted": bool(estimate.get("accepted")),
            "price_min": price.get("min"),
            "price_max": price.get("max"),
        },
        "agreement": {
            "accepted": bool(agreement.get("accepted")),
            "submitted": bool(agreement.get("submitted")),
            "pdf_url": agreement.get("pdfUrl"),
        },
        "proceed": {
            "selected_option": proceed.get("selectedOption"),
            "completed": bool(proceed.get("completed")),
            "action": proceed.get("action"),
        },
    }
    if form.get("timeline"):
        answers["timeline"] = form["timeline"]

    step = raw.get(LEGACY_CURRENT_STEP_KEY)
    index = int(step) if step not in (None, "") else 0
    return {
        "schema_version": 1,
        "answers": answers,
        "current_step_index": min(max(index, 0), LAST_STEP_INDEX),
        "draft_id": raw.get(LEGACY_VISITOR_ID_KEY) or None,
    }


_UPGRADES: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    0: _upgrade_v0,
}


def migrate_snapshot(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Upgrade ``raw`` step by step to the current schema version."""
    version = detect_version(raw)
    if version > SNAPSHOT_SCHEMA_VERSION:
        raise SnapshotVersionError(
            f"Snapshot schema {version} is newer than supported {SNAPSHOT_SCHEMA_VERSION}"
        )
    while version < SNAPSHOT_SCHEMA_VERSION:
        raw = _UPGRADES[version](raw)
        version = detect_version(raw)
        logger.info(f"Upgraded progress snapshot to schema {version}")
    return raw


def decode_snapshot(data: str | Dict[str, Any]) -> Optional[PersistedSnapshot]:
    """Parse, migrate and validate a stored record.

    Corrupt records are logged and reported as absent so the user starts
    fresh instead of being stuck.
    """
    try:
        raw = json.loads(data) if isinstance(data, str) else dict(data)
        if not isinstance(raw, dict):
            raise ValueError("snapshot is not an object")
        return PersistedSnapshot.model_validate(migrate_snapshot(raw))
    except SnapshotVersionError:
        raise
    except (ValueError, TypeError, KeyError, ValidationError) as e:
        logger.warning(f"Discarding unreadable progress snapshot: {e}")
        return None
