import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import requests
from fastapi.encoders import jsonable_encoder

from sales_engine.core.config import settings
from sales_engine.core.errors import ExternalDispatchFailure
from sales_engine.schemas.notification import NotificationDto

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Best-effort delivery of notifications to the notification service.

    publish() hands the message to a worker thread and returns immediately;
    delivery failures are logged and never reach the caller.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: float = 10.0,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.NOTIFICATION_WORKERS,
            thread_name_prefix="notify",
        )

    def publish(self, notification: NotificationDto) -> None:
        try:
            self._executor.submit(self._deliver_safely, notification)
        except RuntimeError:
            logger.exception("Notification executor unavailable; dropped %r", notification.subject)

    def _deliver_safely(self, notification: NotificationDto) -> None:
        try:
            self.deliver(notification)
        except Exception:
            logger.exception("Failed to deliver notification %r", notification.subject)

    def deliver(self, notification: NotificationDto) -> None:
        """Synchronously POST one notification. Raises ExternalDispatchFailure."""
        if not self.url:
            logger.debug("Notification delivery disabled; skipping %r", notification.subject)
            return
        try:
            response = requests.post(
                self.url,
                json=jsonable_encoder(notification),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ExternalDispatchFailure("NotificationDispatchFailed", str(exc)) from exc
        logger.info("Notification %r sent to %s", notification.subject, notification.to.email_address)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency returning the process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(
            url=settings.NOTIFICATION_URL,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )
    return _dispatcher
