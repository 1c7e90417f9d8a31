import json
import os
import re
import time
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

import firebase_admin
import requests
from firebase_admin import credentials, db, storage
from firebase_admin import exceptions as firebase_exceptions

from flexkazi.core.config import Settings, get_settings
from flexkazi.core.errors import FlexKaziError, RemoteUnavailableError, ValidationError
from flexkazi.core.logging import get_logger

logger = get_logger(__name__)

# Errors worth another attempt on an idempotent read
TRANSIENT_ERRORS = (
    firebase_exceptions.UnavailableError,
    firebase_exceptions.DeadlineExceededError,
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)

# Characters the Realtime Database refuses in keys
INVALID_KEY_CHARS = re.compile(r"[.$#\[\]]")


class FirebaseManager:
    """
    Firebase Admin SDK manager shared by the database and storage layers.
    """
    _instance = None
    _app = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(FirebaseManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if self._app is None:
            self.initialize_firebase(get_settings())

    def initialize_firebase(self, settings: Settings):
        """Initialize Firebase Admin SDK"""
        try:
            FirebaseManager._app = firebase_admin.get_app()
            logger.info("Using existing Firebase app")
            return
        except ValueError:
            pass  # App doesn't exist, so we need to initialize it

        options = self._load_options(settings)

        if os.path.exists(settings.service_account_path):
            cred = credentials.Certificate(settings.service_account_path)
            logger.info(f"Firebase initialized with service account key from {settings.service_account_path}")
        else:
            cred = credentials.ApplicationDefault()
            logger.info("Firebase initialized with application default credentials")

        try:
            FirebaseManager._app = firebase_admin.initialize_app(cred, options)
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            logger.error(f"Error initializing Firebase: {e}")
            raise RemoteUnavailableError("Could not connect to FlexKazi services.") from e

    def _load_options(self, settings: Settings) -> Dict[str, Any]:
        """Environment values win over the client-side Firebase.json bundle."""
        config: Dict[str, Any] = {}
        if os.path.exists(settings.firebase_config_path):
            with open(settings.firebase_config_path, "r") as f:
                config = json.load(f)
            logger.info(f"Found Firebase project ID: {config.get('projectId')} from {settings.firebase_config_path}")

        options: Dict[str, Any] = {"httpTimeout": settings.http_timeout}
        project_id = settings.project_id or config.get("projectId")
        database_url = settings.database_url or config.get("databaseURL")
        storage_bucket = settings.storage_bucket or config.get("storageBucket")
        if project_id:
            options["projectId"] = project_id
        if database_url:
            options["databaseURL"] = database_url
        if storage_bucket:
            options["storageBucket"] = storage_bucket
        return options

    def get_app(self):
        return self._app


class RealtimeDatabaseOps:
    """
    Path-based operations on the Firebase Realtime Database.
    The only code that touches firebase_admin.db; failures surface as RemoteUnavailableError.
    """

    def __init__(self, read_retries: Optional[int] = None):
        self.firebase_manager = FirebaseManager()
        self.app = self.firebase_manager.get_app()
        self.read_retries = get_settings().read_retries if read_retries is None else read_retries

    def _ref(self, path: str):
        return db.reference(_normalize(path), app=self.app)

    def get(self, path: str) -> Any:
        """One-shot read; retried on transient failures since reads are idempotent."""
        attempt = 0
        while True:
            try:
                return self._ref(path).get()
            except TRANSIENT_ERRORS as e:
                if attempt >= self.read_retries:
                    logger.error(f"Giving up reading '{path}' after {attempt + 1} attempts: {e}")
                    raise RemoteUnavailableError("FlexKazi is unreachable right now. Please try again.") from e
                attempt += 1
                logger.warning(f"Transient error reading '{path}' (attempt {attempt}): {e}")
                time.sleep(0.2 * attempt)
            except firebase_exceptions.FirebaseError as e:
                logger.error(f"Error reading '{path}': {e}")
                raise RemoteUnavailableError("Could not load data. Please try again.") from e

    def set(self, path: str, value: Any) -> None:
        """Full replace of the value at path."""
        try:
            self._ref(path).set(value)
        except (firebase_exceptions.FirebaseError, *TRANSIENT_ERRORS) as e:
            logger.error(f"Error writing '{path}': {e}")
            raise RemoteUnavailableError("Could not save changes. Please try again.") from e

    def update(self, path: str, updates: Dict[str, Any]) -> None:
        """Merge children at path. Keys may be nested paths, which makes this a multi-location write."""
        if not isinstance(updates, dict):
            raise TypeError("'updates' must be a dictionary.")
        if not updates:
            return
        try:
            self._ref(path).update(updates)
        except (firebase_exceptions.FirebaseError, *TRANSIENT_ERRORS) as e:
            logger.error(f"Error updating '{path}': {e}")
            raise RemoteUnavailableError("Could not save changes. Please try again.") from e

    def transaction(self, path: str, update_fn: Callable[[Any], Any]) -> Any:
        """
        Atomic read-modify-write at path.
        Exceptions raised by update_fn abort the transaction and propagate unchanged.
        """
        try:
            return self._ref(path).transaction(update_fn)
        except FlexKaziError:
            raise
        except db.TransactionAbortedError as e:
            logger.error(f"Transaction on '{path}' aborted: {e}")
            raise RemoteUnavailableError("The update could not be completed. Please try again.") from e
        except (firebase_exceptions.FirebaseError, *TRANSIENT_ERRORS) as e:
            logger.error(f"Transaction on '{path}' failed: {e}")
            raise RemoteUnavailableError("The update could not be completed. Please try again.") from e

    def increment(self, path: str, delta: int = 1) -> int:
        return self.transaction(path, lambda current: (current or 0) + delta)

    def listen(self, path: str, callback: Callable[[Any], None]):
        """Subscribe to changes under path. The returned registration's close() unsubscribes."""
        try:
            return self._ref(path).listen(callback)
        except (firebase_exceptions.FirebaseError, *TRANSIENT_ERRORS) as e:
            logger.error(f"Could not subscribe to '{path}': {e}")
            raise RemoteUnavailableError("Live updates are unavailable right now.") from e


class CloudStorageOps:
    """Uploads deliverables to the Firebase storage bucket."""

    def __init__(self, url_ttl_days: Optional[int] = None):
        self.firebase_manager = FirebaseManager()
        self.app = self.firebase_manager.get_app()
        self.url_ttl = timedelta(days=get_settings().signed_url_ttl_days if url_ttl_days is None else url_ttl_days)

    def upload(self, object_path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Upload bytes under object_path and return a retrievable URL."""
        try:
            blob = storage.bucket(app=self.app).blob(object_path)
            blob.upload_from_string(data, content_type=content_type or "application/octet-stream")
            return blob.generate_signed_url(expiration=self.url_ttl)
        except Exception as e:
            # google-cloud-storage raises its own exception tree, not FirebaseError
            logger.error(f"Error uploading '{object_path}': {e}")
            raise RemoteUnavailableError("File upload failed. Please try again.") from e

    def delete(self, object_path: str) -> None:
        try:
            storage.bucket(app=self.app).blob(object_path).delete()
        except Exception as e:
            logger.error(f"Error deleting '{object_path}': {e}")
            raise RemoteUnavailableError("Could not remove the uploaded file.") from e


def _normalize(path: str) -> str:
    path = (path or "").strip("/")
    if INVALID_KEY_CHARS.search(path):
        raise ValidationError("Invalid identifier.")
    return "/" + path


def get_db_ops_instance() -> RealtimeDatabaseOps:
    return RealtimeDatabaseOps()


def get_storage_ops_instance() -> CloudStorageOps:
    return CloudStorageOps()
