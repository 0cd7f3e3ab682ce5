import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BUNDLED_PERSON_SCHEMA = Path(__file__).parent / "schemas" / "person.schema.json"


class Settings:
    REGISTRY_BASE_URL: str = os.getenv("REGISTRY_BASE_URL", "http://localhost:3001")
    REGISTRY_TIMEOUT_SECONDS: float = float(os.getenv("REGISTRY_TIMEOUT_SECONDS", "10"))
    PERSON_SCHEMA_PATH: str = os.getenv("PERSON_SCHEMA_PATH", str(BUNDLED_PERSON_SCHEMA))
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./patient_relay.db")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
