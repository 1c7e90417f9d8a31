"""
Configuration for the FlexKazi backend.
Loads the Firebase endpoint/credential bundle and service tunables from the environment.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


@dataclass(frozen=True)
class Settings:
    project_id: Optional[str]
    database_url: Optional[str]
    storage_bucket: Optional[str]
    web_api_key: str
    service_account_path: str
    firebase_config_path: str
    http_timeout: float
    read_retries: int
    sync_debounce: float
    signed_url_ttl_days: int
    log_level: str


def load_settings() -> Settings:
    return Settings(
        project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
        database_url=os.getenv("FIREBASE_DATABASE_URL") or None,
        storage_bucket=os.getenv("FIREBASE_STORAGE_BUCKET") or None,
        web_api_key=os.getenv("FIREBASE_WEB_API_KEY", "").strip(),
        service_account_path=os.getenv(
            "FLEXKAZI_SERVICE_ACCOUNT", os.path.join(PROJECT_ROOT, "service-account-key.json")
        ),
        firebase_config_path=os.getenv(
            "FLEXKAZI_FIREBASE_CONFIG", os.path.join(PROJECT_ROOT, "Firebase.json")
        ),
        http_timeout=float(os.getenv("FLEXKAZI_HTTP_TIMEOUT", "10")),
        read_retries=int(os.getenv("FLEXKAZI_READ_RETRIES", "2")),
        sync_debounce=float(os.getenv("FLEXKAZI_SYNC_DEBOUNCE", "0.25")),
        signed_url_ttl_days=int(os.getenv("FLEXKAZI_SIGNED_URL_TTL", "7")),
        log_level=os.getenv("FLEXKAZI_LOG_LEVEL", "INFO"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
