"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# POST /fhir/Patient
# ---------------------------------------------------------------------------

class DiagnosticOut(BaseModel):
    location: str
    message: str
    code: str
    severity: str


class PatientCreated(BaseModel):
    """Confirmation body returned with 201 Created."""
    outcome: str = "created"
    message: str = "Patient created successfully."
    run_id: UUID
    diagnostics: list[DiagnosticOut] = []


class OperationOutcomeIssue(BaseModel):
    severity: Literal["fatal", "error", "warning", "information"]
    code: str
    diagnostics: str
    expression: list[str] = []


class OperationOutcome(BaseModel):
    """FHIR OperationOutcome returned for every failed create."""
    resourceType: Literal["OperationOutcome"] = "OperationOutcome"
    id: UUID
    issue: list[OperationOutcomeIssue]


# ---------------------------------------------------------------------------
# Run lookup
# ---------------------------------------------------------------------------

class StateTiming(BaseModel):
    state: str
    duration_ms: float


class RunResponse(BaseModel):
    id: UUID
    pipeline_name: str
    outcome: str
    final_state: str
    states: list[StateTiming]
    registry_status: int | None
    gateway_failure: str | None
    issues: list[dict[str, str]]
    started_at: datetime
    completed_at: datetime | None


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = "healthy"
    environment: str
    database: str = "connected"
    person_schema: str = "loaded"
