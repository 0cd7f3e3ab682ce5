"""
Patient -> Person relay pipeline.

    validate (FHIR) -> extract -> format date -> build payload
        -> validate (JSON Schema) -> send to registry

Each run is synchronous and short-circuits on the first failure. Every fault
is caught here and reduced to one of the five ``PipelineOutcome`` values;
nothing propagates to the HTTP layer.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from patient_relay.config import Settings
from patient_relay.errors import (
    InboundMalformed,
    InboundNonConformant,
    OutboundNonConformant,
    PipelineFault,
)
from patient_relay.etl.extract import extract_identity
from patient_relay.etl.states import PipelineState, PipelineStateMachine
from patient_relay.etl.transform import build_person_payload, convert_birth_date
from patient_relay.etl.types import Diagnostic, ExtractedIdentity, PipelineOutcome
from patient_relay.services.conformance import ResourceValidator
from patient_relay.services.gateway import (
    GatewayResponse,
    RegistryGateway,
    build_http_client,
)
from patient_relay.services.validation import PersonSchemaValidator

logger = logging.getLogger(__name__)


@dataclass
class PipelineRunResult:
    run_id: str
    outcome: PipelineOutcome
    machine: PipelineStateMachine
    diagnostics: list[Diagnostic] = field(default_factory=list)
    payload: dict[str, str] | None = None
    gateway_response: GatewayResponse | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def final_state(self) -> PipelineState:
        return self.machine.state


def parse_inbound(raw: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    """Accept a JSON document (text or bytes) or an already-decoded object."""
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise InboundMalformed(detail={"error": str(exc)}) from exc
    if not isinstance(raw, Mapping):
        raise InboundMalformed("Request body must be a JSON object")
    return raw


class PatientPipeline:
    """
    Sequences the relay stages. Collaborators are built once (see
    ``build_pipeline``) and shared read-only between concurrent runs.
    """

    def __init__(
        self,
        resource_validator: ResourceValidator,
        schema_validator: PersonSchemaValidator,
        gateway: RegistryGateway,
        extractor: Callable[[Any], ExtractedIdentity] = extract_identity,
    ):
        self.resource_validator = resource_validator
        self.schema_validator = schema_validator
        self.gateway = gateway
        self.extractor = extractor

    def run(self, raw: str | bytes | Mapping[str, Any]) -> PipelineRunResult:
        run_id = str(uuid.uuid4())
        result = PipelineRunResult(
            run_id=run_id,
            outcome=PipelineOutcome.UNEXPECTED_FAILURE,
            machine=PipelineStateMachine(run_id),
        )
        logger.info("Starting pipeline run %s", run_id)

        try:
            self._execute(raw, result)
        except PipelineFault as fault:
            result.diagnostics.extend(fault.diagnostics or (fault.to_diagnostic(),))
            self._finish(result, fault.outcome, PipelineState(fault.outcome.value))
            logger.warning("Run %s stopped: %s (%s)", run_id, fault.code, fault.message)
        except Exception as exc:
            result.diagnostics.append(
                Diagnostic(location="pipeline", message="Unexpected failure", code="exception")
            )
            self._finish(result, PipelineOutcome.UNEXPECTED_FAILURE, PipelineState.UNEXPECTED_FAILURE)
            logger.exception("Run %s failed unexpectedly: %s", run_id, exc.__class__.__name__)

        logger.info("Pipeline run %s finished - %s", run_id, result.outcome.value)
        return result

    def _execute(self, raw: str | bytes | Mapping[str, Any], result: PipelineRunResult) -> None:
        machine = result.machine

        resource = parse_inbound(raw)
        patient, verdict = self.resource_validator.check(resource)
        if not verdict or patient is None:
            raise InboundNonConformant(diagnostics=verdict.diagnostics)
        machine.advance(PipelineState.INBOUND_VALIDATED)

        identity = self.extractor(patient)
        machine.advance(PipelineState.EXTRACTED)

        formatted_dob, date_issue = convert_birth_date(identity.birth_date)
        if date_issue is not None:
            result.diagnostics.append(date_issue)
        machine.advance(PipelineState.FORMATTED)

        result.payload = build_person_payload(identity, formatted_dob)
        machine.advance(PipelineState.OUTBOUND_BUILT)

        outbound = self.schema_validator.validate(result.payload)
        if not outbound:
            raise OutboundNonConformant(diagnostics=outbound.diagnostics)
        machine.advance(PipelineState.OUTBOUND_VALIDATED)

        result.gateway_response = self.gateway.submit(result.payload)
        machine.advance(PipelineState.SENT)

        if result.gateway_response.accepted:
            self._finish(result, PipelineOutcome.CREATED, PipelineState.CREATED)
            return
        result.diagnostics.append(
            Diagnostic(
                location="registry",
                message=f"Registry did not accept the Person payload ({result.gateway_response.error})",
                code=result.gateway_response.failure.value,
            )
        )
        self._finish(result, PipelineOutcome.GATEWAY_REJECTED, PipelineState.REJECTED)

    @staticmethod
    def _finish(result: PipelineRunResult, outcome: PipelineOutcome, state: PipelineState) -> None:
        result.outcome = outcome
        if not result.machine.finished:
            result.machine.advance(state)


def build_pipeline(settings: Settings, *, transport: Any = None) -> PatientPipeline:
    """Explicit initialization step: load the schema and open the HTTP client once."""
    return PatientPipeline(
        resource_validator=ResourceValidator(),
        schema_validator=PersonSchemaValidator.from_path(settings.PERSON_SCHEMA_PATH),
        gateway=RegistryGateway(
            settings.REGISTRY_BASE_URL, build_http_client(settings, transport=transport)
        ),
    )
