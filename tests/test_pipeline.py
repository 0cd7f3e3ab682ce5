"""Tests for the Patient -> Person pipeline – no database or network required."""

import json

import httpx
import pytest

from patient_relay.config import Settings
from patient_relay.errors import MissingNameEntry
from patient_relay.etl.pipeline import build_pipeline
from patient_relay.etl.states import PipelineState
from patient_relay.etl.transform import SENTINEL_DATE
from patient_relay.etl.types import ExtractedIdentity, PipelineOutcome
from patient_relay.services.validation import PersonSchemaValidator


def test_full_pipeline_happy_path(make_pipeline, make_patient, registry):
    """A valid Patient flows through every state and reaches the registry once."""
    result = make_pipeline().run(make_patient())

    assert result.outcome is PipelineOutcome.CREATED
    assert result.final_state is PipelineState.CREATED
    assert result.payload == {
        "PersonFirstName": "John",
        "PersonLastName": "Smith",
        "PersonDOB": "21.05.1990",
    }
    assert registry.bodies == [result.payload]
    assert result.diagnostics == []


def test_accepts_raw_json_bytes(make_pipeline, make_patient):
    body = json.dumps(make_patient(family="Gómez", given=["Maria", "Elena"])).encode()
    result = make_pipeline().run(body)
    assert result.outcome is PipelineOutcome.CREATED
    assert result.payload["PersonFirstName"] == "Maria Elena"
    assert result.payload["PersonLastName"] == "Gómez"


def test_invalid_inbound_halts_before_extraction(make_pipeline, make_patient, registry):
    """Nothing downstream of inbound validation runs for a non-conformant Patient."""

    def extractor(patient):
        pytest.fail("Should not have run")

    resource = make_patient()
    resource["resourceType"] = "Observation"
    result = make_pipeline(extractor=extractor).run(resource)

    assert result.outcome is PipelineOutcome.INVALID_INBOUND
    assert [v.state for v in result.machine.visits] == [
        PipelineState.START,
        PipelineState.INVALID_INBOUND,
    ]
    assert registry.requests == []
    assert result.diagnostics[0].location == "resourceType"


@pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b""])
def test_malformed_body_is_unexpected_failure(make_pipeline, registry, body):
    """An unparseable body is not a validation failure."""
    result = make_pipeline().run(body)
    assert result.outcome is PipelineOutcome.UNEXPECTED_FAILURE
    assert result.final_state is PipelineState.UNEXPECTED_FAILURE
    assert result.diagnostics[0].code == "INBOUND_MALFORMED"
    assert registry.requests == []


def test_missing_given_names_fail_outbound_schema(make_pipeline, make_patient, registry):
    """An empty first name is extracted fine but the registry schema rejects it."""
    result = make_pipeline().run(make_patient(given=()))

    assert result.outcome is PipelineOutcome.INVALID_OUTBOUND
    assert result.final_state is PipelineState.INVALID_OUTBOUND
    assert result.diagnostics[0].location == "/PersonFirstName"
    assert registry.requests == []


def test_unparseable_birth_date_uses_sentinel_and_is_reported(make_pipeline, make_patient, registry):
    def extractor(patient):
        return ExtractedIdentity(first_name="John", last_name="Smith", birth_date="not-a-date")

    result = make_pipeline(extractor=extractor).run(make_patient())

    assert result.outcome is PipelineOutcome.CREATED
    assert result.payload["PersonDOB"] == SENTINEL_DATE
    assert [d.code for d in result.diagnostics] == ["date-conversion-failed"]


@pytest.mark.parametrize("status_code", [409, 400, 500, 200])
def test_non_created_status_is_gateway_rejected(make_pipeline, make_patient, registry, status_code):
    registry.status_code = status_code
    result = make_pipeline().run(make_patient())

    assert result.outcome is PipelineOutcome.GATEWAY_REJECTED
    assert result.final_state is PipelineState.REJECTED
    assert len(registry.requests) == 1


def test_transport_fault_is_gateway_rejected(make_pipeline, make_patient, registry):
    """Transport errors are treated like rejections, not unexpected failures."""
    registry.error = httpx.ConnectError("Connection refused")
    result = make_pipeline().run(make_patient())

    assert result.outcome is PipelineOutcome.GATEWAY_REJECTED
    assert result.gateway_response.failure.value == "transient_failure"
    assert result.diagnostics[-1].code == "transient_failure"


def test_extraction_fault_is_unexpected_failure(make_pipeline, make_patient, registry):
    def extractor(patient):
        raise MissingNameEntry()

    result = make_pipeline(extractor=extractor).run(make_patient())
    assert result.outcome is PipelineOutcome.UNEXPECTED_FAILURE
    assert result.diagnostics[0].code == "MISSING_NAME_ENTRY"
    assert registry.requests == []


def test_collaborator_exception_is_unexpected_failure(make_pipeline, make_patient):
    def extractor(patient):
        raise RuntimeError("Intentional failure")

    result = make_pipeline(extractor=extractor).run(make_patient())
    assert result.outcome is PipelineOutcome.UNEXPECTED_FAILURE
    assert result.final_state is PipelineState.UNEXPECTED_FAILURE


def test_unavailable_schema_is_unexpected_failure(make_pipeline, make_patient, registry, tmp_path):
    """A missing schema document never lets a payload through unchecked."""
    schema_validator = PersonSchemaValidator.from_path(tmp_path / "missing.json")
    result = make_pipeline(schema_validator=schema_validator).run(make_patient())

    assert result.outcome is PipelineOutcome.UNEXPECTED_FAILURE
    assert result.diagnostics[0].code == "CONFIGURATION_FAULT"
    assert registry.requests == []


def test_build_pipeline_from_settings(make_patient, registry):
    settings = Settings()
    settings.REGISTRY_BASE_URL = "http://registry.test"
    pipeline = build_pipeline(settings, transport=httpx.MockTransport(registry))

    result = pipeline.run(make_patient())
    assert result.outcome is PipelineOutcome.CREATED
    assert str(registry.requests[0].url) == "http://registry.test/fhir/Person"
    pipeline.gateway.close()


def test_absent_given_name_still_reaches_registry(make_pipeline, make_patient, registry):
    resource = make_patient(given=["John", None])
    resource["name"][0]["_given"] = [
        None,
        {
            "extension": [
                {
                    "url": "http://hl7.org/fhir/StructureDefinition/data-absent-reason",
                    "valueCode": "unknown",
                }
            ]
        },
    ]
    result = make_pipeline().run(resource)

    assert result.outcome is PipelineOutcome.CREATED
    assert registry.bodies[0]["PersonFirstName"] == "John"
