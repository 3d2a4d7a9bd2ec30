import logging
import random
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sales_engine.core.audit import append_history
from sales_engine.core.auth import User
from sales_engine.core.errors import EngineError, InternalError, StateConflictError
from sales_engine.core.notifications import NotificationDispatcher
from sales_engine.models.enums import ActionType
from sales_engine.schemas.notification import NotificationDto

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def generate_code() -> str:
    """Random 6-digit code, e.g. a reservation code or the numeric part of a letter number."""
    return str(random.randint(100000, 999999))


def generate_number(prefix: str) -> str:
    return f"{prefix}{generate_code()}"


def transaction_ref(now: Optional[datetime] = None) -> str:
    """ddMMHHmmssYY timestamp reference."""
    now = now or datetime.now()
    return now.strftime("%d%m%H%M%S%y")


class BaseService:
    """
    Shared plumbing for the engine services.

    Each public operation runs inside ``transaction()``: one database
    transaction that either commits completely or rolls back completely.
    Notifications queued with ``notify()`` are published only after commit.
    """

    # Code reported when a unique index rejects a write
    integrity_conflict_code = "PropertyStatusConflict"

    def __init__(
        self,
        db: Session,
        dispatcher: Optional[NotificationDispatcher] = None,
        outbox: Optional[List[NotificationDto]] = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self._outbox = outbox if outbox is not None else []

    @contextmanager
    def transaction(self):
        try:
            yield
            self.db.commit()
        except EngineError as exc:
            self._abort()
            logger.warning("%s refused: %s", type(self).__name__, exc.code)
            raise
        except IntegrityError as exc:
            self._abort()
            logger.warning("%s hit a unique constraint: %s", type(self).__name__, exc.orig)
            raise StateConflictError(self.integrity_conflict_code) from exc
        except Exception as exc:
            self._abort()
            logger.exception("Unexpected error in %s", type(self).__name__)
            raise InternalError() from exc
        self._flush_outbox()

    def _abort(self) -> None:
        self.db.rollback()
        self._outbox.clear()

    def _flush_outbox(self) -> None:
        pending = list(self._outbox)
        self._outbox.clear()
        if self.dispatcher is None:
            return
        for notification in pending:
            self.dispatcher.publish(notification)

    def notify(self, notification: NotificationDto) -> None:
        self._outbox.append(notification)

    def record(
        self,
        actor: Optional[User],
        entity_type: str,
        entity_id: int,
        action_type: ActionType,
        changes: dict,
    ) -> None:
        append_history(
            self.db,
            actor=actor,
            entity_type=entity_type,
            entity_id=entity_id,
            action_type=action_type,
            changes=changes,
        )
