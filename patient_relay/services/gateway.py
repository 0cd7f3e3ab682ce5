"""
Client for the downstream Person registry.

One POST per pipeline run, no retries. Only ``201 Created`` counts as
success. Failures are tagged (client rejection vs. transient failure) so a
retry policy can be added later; callers that only need a yes/no use
``send``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import httpx

from patient_relay.config import Settings

logger = logging.getLogger(__name__)

PERSON_PATH = "/fhir/Person"


class GatewayFailure(str, Enum):
    CLIENT_REJECTED = "client_rejected"
    TRANSIENT_FAILURE = "transient_failure"


@dataclass(frozen=True)
class GatewayResponse:
    status_code: int | None
    failure: GatewayFailure | None = None
    error: str | None = None

    @property
    def accepted(self) -> bool:
        return self.failure is None


def build_http_client(settings: Settings, *, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Create the shared ``httpx.Client`` with a bounded timeout."""
    return httpx.Client(
        timeout=httpx.Timeout(settings.REGISTRY_TIMEOUT_SECONDS),
        headers={"Accept": "application/json"},
        transport=transport,
    )


class RegistryGateway:
    def __init__(self, base_url: str, client: httpx.Client):
        self.url = base_url.rstrip("/") + PERSON_PATH
        self._client = client

    def submit(self, payload: Mapping[str, Any]) -> GatewayResponse:
        logger.info("Sending request to registry: %s", self.url)
        try:
            response = self._client.post(self.url, json=dict(payload))
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("Registry request failed: %s", exc.__class__.__name__)
            return GatewayResponse(
                status_code=None,
                failure=GatewayFailure.TRANSIENT_FAILURE,
                error=f"{exc.__class__.__name__}: {exc}",
            )

        logger.info("Response from registry: %s", response.status_code)
        if response.status_code == httpx.codes.CREATED:
            return GatewayResponse(status_code=response.status_code)

        logger.warning("Registry returned an unexpected status: %s", response.status_code)
        failure = (
            GatewayFailure.TRANSIENT_FAILURE
            if response.status_code >= 500
            else GatewayFailure.CLIENT_REJECTED
        )
        return GatewayResponse(
            status_code=response.status_code,
            failure=failure,
            error=f"HTTP {response.status_code}",
        )

    def send(self, payload: Mapping[str, Any]) -> bool:
        return self.submit(payload).accepted

    def close(self) -> None:
        self._client.close()
