"""
FastAPI routes.

- ``POST /fhir/Patient`` runs the relay pipeline for one FHIR Patient
- ``GET /api/v1/health`` and ``GET /api/v1/runs/{run_id}`` for operators
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from patient_relay.config import settings
from patient_relay.etl.pipeline import PatientPipeline, PipelineRunResult
from patient_relay.etl.types import PipelineOutcome
from patient_relay.models.database import get_db
from patient_relay.models.pipeline_run import PipelineRun
from patient_relay.schemas.api import (
    DiagnosticOut,
    HealthResponse,
    OperationOutcome,
    OperationOutcomeIssue,
    PatientCreated,
    RunResponse,
)
from patient_relay.services.audit import record_run

logger = logging.getLogger(__name__)

fhir_router = APIRouter()
router = APIRouter()

# Only inbound validation failures are the caller's fault; everything else is a 500.
HTTP_STATUS = {
    PipelineOutcome.CREATED: 201,
    PipelineOutcome.INVALID_INBOUND: 400,
    PipelineOutcome.INVALID_OUTBOUND: 500,
    PipelineOutcome.GATEWAY_REJECTED: 500,
    PipelineOutcome.UNEXPECTED_FAILURE: 500,
}

ISSUE_TYPE = {
    PipelineOutcome.INVALID_INBOUND: "invalid",
    PipelineOutcome.INVALID_OUTBOUND: "processing",
    PipelineOutcome.GATEWAY_REJECTED: "transient",
    PipelineOutcome.UNEXPECTED_FAILURE: "exception",
}


async def read_body(request: Request) -> bytes:
    """Raw body; JSON parsing is part of the pipeline so malformed input is a 400."""
    return await request.body()


def get_pipeline(request: Request) -> PatientPipeline:
    """The pipeline built once at startup (see main.on_startup)."""
    return request.app.state.pipeline


def _operation_outcome(result: PipelineRunResult) -> OperationOutcome:
    issue_type = ISSUE_TYPE[result.outcome]
    issues = [
        OperationOutcomeIssue(
            severity=d.severity,
            code="informational" if d.severity == "warning" else issue_type,
            diagnostics=d.message,
            expression=[d.location],
        )
        for d in result.diagnostics
    ]
    return OperationOutcome(id=result.run_id, issue=issues)


# ---------------------------------------------------------------------------
# FHIR create
# ---------------------------------------------------------------------------

@fhir_router.post(
    "/Patient",
    status_code=201,
    response_model=PatientCreated,
    responses={400: {"model": OperationOutcome}, 500: {"model": OperationOutcome}},
)
def create_patient(
    body: bytes = Depends(read_body),
    pipeline: PatientPipeline = Depends(get_pipeline),
    db: Session = Depends(get_db),
):
    """
    Validate a FHIR Patient, reshape it into a registry Person and forward it.
    201 on success, 400 when the Patient is invalid, 500 otherwise.
    """
    result = pipeline.run(body)
    record_run(db, result)
    db.commit()

    if result.outcome is PipelineOutcome.CREATED:
        logger.info("Patient data sent successfully (run %s)", result.run_id)
        return PatientCreated(
            run_id=result.run_id,
            diagnostics=[DiagnosticOut(**d.to_dict()) for d in result.diagnostics],
        )

    logger.error("Failed to relay patient (run %s): %s", result.run_id, result.outcome.value)
    return JSONResponse(
        status_code=HTTP_STATUS[result.outcome],
        content=_operation_outcome(result).model_dump(mode="json"),
        media_type="application/fhir+json",
    )


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse)
def health_check(
    pipeline: PatientPipeline = Depends(get_pipeline),
    db: Session = Depends(get_db),
):
    """Verifies DB connectivity and that the Person schema was loaded."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception:
        logger.exception("Database health check failed")
        db_status = "disconnected"
    schema_status = "loaded" if pipeline.schema_validator.available else "unavailable"
    return HealthResponse(
        status="healthy" if db_status == "connected" and schema_status == "loaded" else "degraded",
        environment=settings.ENVIRONMENT,
        database=db_status,
        person_schema=schema_status,
    )


# ---------------------------------------------------------------------------
# Run lookup
# ---------------------------------------------------------------------------

@router.get("/runs/{run_id}", response_model=RunResponse)
def get_run(run_id: UUID, db: Session = Depends(get_db)):
    """Retrieve the audit entry of a single pipeline run."""
    run = db.get(PipelineRun, run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Pipeline run not found")
    return RunResponse.model_validate(run, from_attributes=True)
