from __future__ import annotations

import json
import logging

import firebase_admin
from firebase_admin import App, credentials

from app.core.config import settings
from app.core.errors import ConfigError

logger = logging.getLogger(__name__)

REQUIRED_SERVICE_ACCOUNT_FIELDS = ("project_id", "private_key", "client_email")


def load_service_account(raw: str | None) -> dict:
    """Parse and validate the service-account JSON document.

    Raises:
        ConfigError: the document is missing, not JSON, or lacks a
            required field.
    """
    if not raw:
        raise ConfigError("Missing FIREBASE_SERVICE_ACCOUNT environment variable")
    try:
        info = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError("Invalid FIREBASE_SERVICE_ACCOUNT JSON format") from exc
    if not isinstance(info, dict):
        raise ConfigError("Invalid FIREBASE_SERVICE_ACCOUNT JSON format")
    for field in REQUIRED_SERVICE_ACCOUNT_FIELDS:
        if not info.get(field):
            raise ConfigError(f"Missing required field in service account: {field}")
    return info


class FirebaseManager:
    """Singleton holder for the Firebase Admin app used for push messaging.

    Mirrors ``DatabaseManager``: ``initialize()`` runs from the lifespan
    hook, and a failure there only disables the notification endpoint.
    ``get_app()`` retries initialization so a fixed environment is picked
    up without a restart.
    """

    APP_NAME = "shukku-list"

    _instance: FirebaseManager | None = None
    _app: App | None = None

    def __new__(cls) -> FirebaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def initialize(self) -> App:
        if self._app is not None:
            return self._app
        info = load_service_account(settings.firebase_service_account)
        try:
            self._app = firebase_admin.get_app(self.APP_NAME)
        except ValueError:
            try:
                self._app = firebase_admin.initialize_app(
                    credentials.Certificate(info),
                    {"projectId": info["project_id"]},
                    name=self.APP_NAME,
                )
            except ValueError as exc:
                raise ConfigError("Invalid Firebase service account credentials") from exc
        logger.info("Firebase Admin initialized for project %s.", info["project_id"])
        return self._app

    def get_app(self) -> App:
        """Return the initialized app, or raise ``ConfigError``."""
        return self.initialize()

    def shutdown(self) -> None:
        if self._app is not None:
            firebase_admin.delete_app(self._app)
            self._app = None
            logger.info("Firebase Admin app deleted.")


#: Module-level singleton.
firebase: FirebaseManager = FirebaseManager()
