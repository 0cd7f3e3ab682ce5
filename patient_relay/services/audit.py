"""Audit logging service for relay runs."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from patient_relay.etl.pipeline import PipelineRunResult
from patient_relay.models.pipeline_run import PipelineRun

logger = logging.getLogger(__name__)


def record_run(db: Session, result: PipelineRunResult) -> PipelineRun:
    """Write an immutable audit entry for a finished pipeline run."""
    response = result.gateway_response
    entry = PipelineRun(
        id=uuid.UUID(result.run_id),
        outcome=result.outcome.value,
        final_state=result.final_state.value,
        states=result.machine.to_dict()["states"],
        registry_status=response.status_code if response else None,
        gateway_failure=response.failure.value if response and response.failure else None,
        issues=[
            {"location": d.location, "code": d.code, "severity": d.severity}
            for d in result.diagnostics
        ],
        started_at=result.started_at,
        completed_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    db.flush()
    logger.info("AUDIT: run %s %s", result.run_id, result.outcome.value)
    return entry
