"""
Fault taxonomy for the Patient -> Person relay.

Every fault carries a stable ``code`` and the ``PipelineOutcome`` it is
reduced to at the orchestrator boundary. Faults never reach the HTTP layer
as exceptions.
"""

from __future__ import annotations

from typing import Any

from patient_relay.etl.types import Diagnostic, PipelineOutcome


class PipelineFault(Exception):
    """Base class: unified code / message / detail format."""

    code = "PIPELINE_FAULT"
    message = "Pipeline fault"
    outcome = PipelineOutcome.UNEXPECTED_FAILURE

    def __init__(
        self,
        message: str | None = None,
        *,
        diagnostics: tuple[Diagnostic, ...] = (),
        detail: dict[str, Any] | None = None,
    ):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.diagnostics = diagnostics
        self.detail = detail if detail is not None else {}

    def to_diagnostic(self, location: str = "Patient") -> Diagnostic:
        return Diagnostic(location=location, message=self.message, code=self.code)


class InboundMalformed(PipelineFault):
    """Request body is not a JSON object at all."""

    code = "INBOUND_MALFORMED"
    message = "Request body is not a parseable FHIR resource"


class InboundNonConformant(PipelineFault):
    code = "INBOUND_NON_CONFORMANT"
    message = "Invalid FHIR Patient resource"
    outcome = PipelineOutcome.INVALID_INBOUND


class ExtractionFault(PipelineFault):
    code = "EXTRACTION_FAULT"
    message = "Required substructure missing from Patient resource"


class MissingNameEntry(ExtractionFault):
    code = "MISSING_NAME_ENTRY"
    message = "Patient resource has no name entry"


class MissingFamilyName(ExtractionFault):
    code = "MISSING_FAMILY_NAME"
    message = "First name entry of Patient resource has no family name"


class OutboundNonConformant(PipelineFault):
    code = "OUTBOUND_NON_CONFORMANT"
    message = "Person payload failed schema validation"
    outcome = PipelineOutcome.INVALID_OUTBOUND


class GatewayUnreachable(PipelineFault):
    code = "GATEWAY_UNREACHABLE"
    message = "Registry could not be reached"
    outcome = PipelineOutcome.GATEWAY_REJECTED


class GatewayRejected(PipelineFault):
    code = "GATEWAY_REJECTED"
    message = "Registry did not accept the Person payload"
    outcome = PipelineOutcome.GATEWAY_REJECTED


class ConfigurationFault(PipelineFault):
    """Startup resource (e.g. the Person schema document) is unavailable."""

    code = "CONFIGURATION_FAULT"
    message = "Service is misconfigured"
