"""Firebase Cloud Messaging adapter.

Builds the multicast message sent to a family's devices and maps the
provider's failures onto the service error taxonomy.  The Admin SDK is
synchronous, so sends run in Starlette's threadpool.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Callable

from firebase_admin import App, exceptions, messaging
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import InvalidPayloadError, InvalidTokensError, UnknownError
from app.core.firebase import firebase

logger = logging.getLogger(__name__)

#: FCM limit on tokens per multicast request.
MAX_BATCH_SIZE = 500


@dataclass
class MulticastOutcome:
    success_count: int
    failure_count: int
    failed_tokens: list[str] = field(default_factory=list)


class PushMessenger:
    def __init__(
        self,
        app_provider: Callable[[], App] = firebase.get_app,
        channel_id: str | None = None,
    ) -> None:
        self._app_provider = app_provider
        self._channel_id = channel_id or settings.push_channel_id

    def ensure_ready(self) -> None:
        """Raise ``ConfigError`` if the Firebase app cannot be initialized."""
        self._app_provider()

    def build_message(
        self,
        tokens: list[str],
        title: str,
        body: str,
        image: str | None = None,
    ) -> messaging.MulticastMessage:
        # Stored values are FCM registration tokens, not installation IDs.
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DeprecationWarning)
            return messaging.MulticastMessage(
                tokens=tokens,
                notification=messaging.Notification(title=title, body=body, image=image),
                apns=messaging.APNSConfig(
                    payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1))
                ),
                android=messaging.AndroidConfig(
                    priority="high",
                    notification=messaging.AndroidNotification(
                        sound="default", channel_id=self._channel_id
                    ),
                ),
                webpush=messaging.WebpushConfig(headers={"Urgency": "high"}),
            )

    async def send_multicast(
        self,
        tokens: list[str],
        title: str,
        body: str,
        image: str | None = None,
    ) -> MulticastOutcome:
        """Send one notification to every token and report per-token results.

        Tokens go out in batches of at most ``MAX_BATCH_SIZE``; the counts
        cover all batches.

        Raises:
            ConfigError: Firebase is not configured.
            InvalidPayloadError: the message was rejected as malformed.
            InvalidTokensError: the provider rejected the tokens outright.
            UnknownError: any other provider failure.
        """
        app = self._app_provider()
        outcome = MulticastOutcome(success_count=0, failure_count=0)
        for start in range(0, len(tokens), MAX_BATCH_SIZE):
            batch = tokens[start : start + MAX_BATCH_SIZE]
            try:
                message = self.build_message(batch, title, body, image)
                response = await run_in_threadpool(
                    messaging.send_each_for_multicast, message, app=app
                )
            except (ValueError, exceptions.InvalidArgumentError) as exc:
                logger.warning("Push provider rejected the message: %s", exc)
                raise InvalidPayloadError() from exc
            except messaging.UnregisteredError as exc:
                logger.warning("Push provider rejected the device tokens: %s", exc)
                raise InvalidTokensError() from exc
            except exceptions.FirebaseError as exc:
                logger.error("Push provider failure: %s", exc)
                raise UnknownError("Failed to send notifications") from exc

            outcome.success_count += response.success_count
            outcome.failure_count += response.failure_count
            for token, send_response in zip(batch, response.responses):
                if not send_response.success:
                    outcome.failed_tokens.append(token)
                    logger.warning("Token failed: %s", send_response.exception)

        return outcome
