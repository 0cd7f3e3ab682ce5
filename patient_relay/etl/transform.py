"""
Transform step: FHIR birth date -> registry date, identity -> Person payload.

Date conversion is the one place in the relay that does not fail fast. A
birth date that is not a strict ``YYYY-MM-DD`` calendar date is replaced by
``SENTINEL_DATE`` and the run continues; ``convert_birth_date`` reports the
substitution as a ``date-conversion-failed`` warning so the caller can tell
the sentinel apart from a real 1 January 1900.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from patient_relay.etl.types import Diagnostic, ExtractedIdentity

logger = logging.getLogger(__name__)

SENTINEL_DATE = "01.01.1900"
DATE_CONVERSION_FAILED = "date-conversion-failed"

_ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def to_display_format(iso_date: str) -> str:
    """Convert ``YYYY-MM-DD`` to ``DD.MM.YYYY``; sentinel on any parse failure."""
    if not iso_date or not _ISO_DATE.fullmatch(iso_date):
        logger.warning("Birth date is not in YYYY-MM-DD form; using sentinel")
        return SENTINEL_DATE
    try:
        parsed = datetime.strptime(iso_date, "%Y-%m-%d").date()
    except ValueError:
        logger.warning("Birth date is not a valid calendar date; using sentinel")
        return SENTINEL_DATE
    # strftime does not zero-pad years below 1000 on every platform
    return f"{parsed.day:02d}.{parsed.month:02d}.{parsed.year:04d}"


def convert_birth_date(iso_date: str) -> tuple[str, Diagnostic | None]:
    formatted = to_display_format(iso_date)
    if formatted == SENTINEL_DATE and iso_date != "1900-01-01":
        return formatted, Diagnostic(
            location="Patient.birthDate",
            message=f"Birth date could not be converted; substituted {SENTINEL_DATE}",
            code=DATE_CONVERSION_FAILED,
            severity="warning",
        )
    return formatted, None


def build_person_payload(identity: ExtractedIdentity, formatted_birth_date: str) -> dict[str, str]:
    return {
        "PersonFirstName": identity.first_name,
        "PersonLastName": identity.last_name,
        "PersonDOB": formatted_birth_date,
    }
