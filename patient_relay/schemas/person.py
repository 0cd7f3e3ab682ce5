"""
Loader for the registry's Person JSON Schema (draft 2020-12).

The document ships inside the package (``person.schema.json``) and is read
once at startup. A missing, unreadable or invalid document is a
``ConfigurationFault``, never an empty schema that would accept anything.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from patient_relay.config import BUNDLED_PERSON_SCHEMA
from patient_relay.errors import ConfigurationFault

logger = logging.getLogger(__name__)


def load_person_schema(path: str | Path = BUNDLED_PERSON_SCHEMA) -> dict[str, Any]:
    try:
        schema = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationFault(
            "Could not load Person JSON schema", detail={"path": str(path), "error": str(exc)}
        ) from exc

    try:
        Draft202012Validator.check_schema(schema)
    except SchemaError as exc:
        raise ConfigurationFault(
            "Person JSON schema is not a valid draft 2020-12 schema",
            detail={"path": str(path), "error": exc.message},
        ) from exc

    logger.info("Loaded Person schema %s", schema.get("$id", path))
    return schema
