"""Extract step: read the registry's demographic fields out of a FHIR Patient."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from patient_relay.errors import MissingFamilyName, MissingNameEntry
from patient_relay.etl.types import ExtractedIdentity

logger = logging.getLogger(__name__)


def extract_identity(patient: Any) -> ExtractedIdentity:
    """
    Take names from the *first* HumanName entry only.
    Present given names are joined with single spaces in their original order.
    """
    names = patient.name or []
    if not names:
        raise MissingNameEntry()

    first_entry = names[0]
    if not first_entry.family:
        raise MissingFamilyName()

    # a given name may be null when only its extension (e.g. data-absent-reason) is present
    given = [g for g in (first_entry.given or []) if g]
    identity = ExtractedIdentity(
        first_name=" ".join(given),
        last_name=first_entry.family,
        birth_date=_lexical_birth_date(patient.birthDate),
    )
    logger.info("Extracted identity (%d given names)", len(given))
    return identity


def _lexical_birth_date(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
