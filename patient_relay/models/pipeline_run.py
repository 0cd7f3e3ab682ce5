"""
Audit trail of relay pipeline runs.

Only operational data is stored: outcome, visited states, registry status
and the location/code of each diagnostic. Names and birth dates (PHI) are
never written, and neither are diagnostic messages, which can echo them.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Enum, Index, Integer, String, Uuid

from patient_relay.models.database import Base


# ---------------------------------------------------------------------------
# Pipeline Run – one row per POST /fhir/Patient
# ---------------------------------------------------------------------------
class PipelineRun(Base):
    __tablename__ = "pipeline_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    pipeline_name = Column(String(128), nullable=False, default="patient_to_person")
    outcome = Column(
        Enum(
            "created",
            "invalid_inbound",
            "invalid_outbound",
            "gateway_rejected",
            "unexpected_failure",
            name="pipeline_outcome_enum",
        ),
        nullable=False,
    )
    final_state = Column(String(32), nullable=False)
    states = Column(JSON, comment="Visited states with durations")
    registry_status = Column(Integer, nullable=True, comment="HTTP status from the registry")
    gateway_failure = Column(String(32), nullable=True, comment="client_rejected | transient_failure")
    issues = Column(JSON, default=list, comment="Diagnostic locations and codes")
    started_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_pipeline_runs_outcome", "outcome"),)
