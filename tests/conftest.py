"""
Pytest configuration and shared fixtures.

The registry is simulated with ``httpx.MockTransport``; the audit database is
an in-memory SQLite engine. Nothing here touches the network or disk.
"""

import json

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from patient_relay.config import BUNDLED_PERSON_SCHEMA
from patient_relay.etl.pipeline import PatientPipeline
from patient_relay.models.database import Base
from patient_relay.models.pipeline_run import PipelineRun  # noqa: F401  (registers the table)
from patient_relay.services.conformance import ResourceValidator
from patient_relay.services.gateway import RegistryGateway
from patient_relay.services.validation import PersonSchemaValidator

REGISTRY_URL = "http://registry.test"


class RecordingRegistry:
    """Fake downstream registry: records requests, answers with a fixed status."""

    def __init__(self, status_code=201, error=None):
        self.status_code = status_code
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json={"status": self.status_code})

    @property
    def bodies(self):
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def make_patient():
    def _make(family="Smith", given=("John",), birth_date="1990-05-21", **extra):
        name = {}
        if family is not None:
            name["family"] = family
        if given:
            name["given"] = list(given)
        resource = {"resourceType": "Patient", "name": [name], **extra}
        if birth_date is not None:
            resource["birthDate"] = birth_date
        return resource

    return _make


@pytest.fixture
def registry():
    return RecordingRegistry()


@pytest.fixture
def gateway(registry):
    client = httpx.Client(transport=httpx.MockTransport(registry))
    gateway = RegistryGateway(REGISTRY_URL, client)
    yield gateway
    gateway.close()


@pytest.fixture
def schema_validator():
    return PersonSchemaValidator.from_path(BUNDLED_PERSON_SCHEMA)


@pytest.fixture
def make_pipeline(gateway, schema_validator):
    def _make(**overrides):
        options = {
            "resource_validator": ResourceValidator(),
            "schema_validator": schema_validator,
            "gateway": gateway,
        }
        options.update(overrides)
        return PatientPipeline(**options)

    return _make


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()
