"""
JSON Schema validation of the outbound Person payload.

Collects every error rather than failing on the first one, so the
diagnostic list is complete.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from jsonschema import Draft202012Validator

from patient_relay.errors import ConfigurationFault
from patient_relay.etl.types import Diagnostic, ValidationVerdict
from patient_relay.schemas.person import load_person_schema

logger = logging.getLogger(__name__)


def validate_against_schema(data: Mapping[str, Any], schema: dict[str, Any]) -> ValidationVerdict:
    """
    Validate a mapping against a draft 2020-12 JSON schema.
    Each error becomes a diagnostic located by its JSON pointer ("/" = root).
    """
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(dict(data)), key=lambda e: (list(e.path), e.message))
    return ValidationVerdict.from_diagnostics(
        Diagnostic(
            location="/" + "/".join(str(part) for part in error.absolute_path),
            message=error.message,
            code=str(error.validator),
        )
        for error in errors
    )


class PersonSchemaValidator:
    """
    Holds the Person schema loaded at startup.

    When the schema could not be loaded the validator stays usable as an
    object but every ``validate`` call raises the ConfigurationFault from loading.
    """

    def __init__(self, schema: dict[str, Any] | None, load_error: ConfigurationFault | None = None):
        if schema is None and load_error is None:
            load_error = ConfigurationFault("Person JSON schema was not provided")
        self._schema = schema
        self._load_error = load_error

    @classmethod
    def from_path(cls, path: str | Path) -> PersonSchemaValidator:
        try:
            return cls(load_person_schema(path))
        except ConfigurationFault as exc:
            logger.critical("%s (%s)", exc.message, exc.detail.get("path"))
            return cls(None, load_error=exc)

    @property
    def available(self) -> bool:
        return self._schema is not None

    def validate(self, payload: Mapping[str, Any]) -> ValidationVerdict:
        if self._schema is None:
            raise self._load_error
        verdict = validate_against_schema(payload, self._schema)
        for diagnostic in verdict.diagnostics:
            # messages can echo payload values, so only the location is logged
            logger.warning(
                "Schema validation error at %s (%s)", diagnostic.location, diagnostic.code
            )
        return verdict
