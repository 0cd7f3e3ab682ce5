"""
FastAPI application entrypoint.

Run locally:  uvicorn patient_relay.main:app --reload
"""

import logging

from fastapi import FastAPI

from patient_relay.api.routes import fhir_router, router
from patient_relay.config import settings
from patient_relay.etl.pipeline import build_pipeline
from patient_relay.models.database import Base, engine

logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s | %(name)s | %(message)s")

app = FastAPI(
    title="Patient Relay",
    description=(
        "Accepts FHIR Patient resources, reshapes them into the Person "
        "payload of the downstream registry and forwards them."
    ),
    version="1.0.0",
)

app.include_router(fhir_router, prefix="/fhir")
app.include_router(router, prefix="/api/v1")


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    app.state.pipeline = build_pipeline(settings)


@app.on_event("shutdown")
def on_shutdown():
    app.state.pipeline.gateway.close()
