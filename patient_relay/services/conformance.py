"""
Inbound conformance check for FHIR Patient resources.

Structural validation is delegated to ``fhir.resources`` (pydantic models of
FHIR R4B, whose Patient matches R4); this module only reduces its verdict to
a ``ValidationVerdict`` and adds the registry profile rules the Person payload
depends on (a first name entry carrying a family name).
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from fhir.resources.R4B.patient import Patient
from pydantic import ValidationError

from patient_relay.etl.types import Diagnostic, ValidationVerdict

logger = logging.getLogger(__name__)


def _location(loc: tuple[Any, ...]) -> str:
    return ".".join(["Patient", *(str(part) for part in loc)])


class ResourceValidator:
    """Wraps the conformance engine. Stateless; safe to share between runs."""

    resource_type = "Patient"

    def validate(self, resource: Mapping[str, Any]) -> ValidationVerdict:
        _, verdict = self.check(resource)
        return verdict

    def check(self, resource: Mapping[str, Any]) -> tuple[Patient | None, ValidationVerdict]:
        """Return the parsed Patient (only when valid) and the verdict."""
        found_type = resource.get("resourceType")
        if found_type != self.resource_type:
            verdict = ValidationVerdict.from_diagnostics(
                [
                    Diagnostic(
                        location="resourceType",
                        message=f"Expected resourceType 'Patient', got {found_type!r}",
                        code="invalid-resource-type",
                    )
                ]
            )
            self._log_issues(verdict)
            return None, verdict

        try:
            patient = Patient.model_validate(dict(resource))
        except ValidationError as exc:
            verdict = ValidationVerdict.from_diagnostics(
                Diagnostic(location=_location(err["loc"]), message=err["msg"], code=err["type"])
                for err in exc.errors()
            )
            self._log_issues(verdict)
            return None, verdict

        verdict = ValidationVerdict.from_diagnostics(self._profile_issues(patient))
        if not verdict:
            self._log_issues(verdict)
            return None, verdict
        return patient, verdict

    @staticmethod
    def _profile_issues(patient: Patient) -> list[Diagnostic]:
        if not patient.name:
            return [
                Diagnostic(
                    location="Patient.name",
                    message="At least one name entry is required",
                    code="required",
                )
            ]
        if not patient.name[0].family:
            return [
                Diagnostic(
                    location="Patient.name.0.family",
                    message="The first name entry must carry a family name",
                    code="required",
                )
            ]
        return []

    @staticmethod
    def _log_issues(verdict: ValidationVerdict) -> None:
        for diagnostic in verdict.diagnostics:
            logger.warning(
                "Validation issue: %s - %s", diagnostic.location, diagnostic.message
            )
