"""
Notification fan-out and inbox.

Events are delivered after the triggering write has committed, on a thread
pool or inline. Each (event, recipient) pair is stored once; a repeated
delivery hits the unique idempotency key and is dropped.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError

from .. import repo
from ..config import NOTIFY_WORKERS
from .domain import NotificationEvent, as_utc
from .errors import NotFound
from .notify_templates import render_notification

logger = logging.getLogger(__name__)


def idempotency_key(event_id: str, recipient_id: str) -> str:
    return f"{event_id}:{recipient_id}"


class NotificationDispatcher:
    """Persists one in-app notification per event recipient, off the caller's path.

    dispatch() is only called after the triggering transaction committed, so a
    failure here can lose a notification but never undo the state change.
    Nothing raised while persisting reaches the caller.
    """

    def __init__(self, session_factory: Callable[[], Any], workers: int = NOTIFY_WORKERS) -> None:
        self._session_factory = session_factory
        self._executor: ThreadPoolExecutor | None = None
        if workers > 0:
            self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify")
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def dispatch(self, event: NotificationEvent) -> None:
        if self._executor is None:
            self._deliver(event)
            return
        try:
            future = self._executor.submit(self._deliver, event)
        except RuntimeError:
            logger.warning("[notify] dispatcher shut down, dropping event=%s type=%s", event.id, event.type.value)
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def drain(self, timeout: float | None = None) -> None:
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self.drain()
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    def _deliver(self, event: NotificationEvent) -> int:
        created = 0
        for recipient_id in dict.fromkeys(event.recipients):
            try:
                if self._persist(event, recipient_id):
                    created += 1
            except Exception:
                logger.exception(
                    "[notify] failed to persist event=%s type=%s recipient=%s",
                    event.id,
                    event.type.value,
                    recipient_id,
                )
        return created

    def _persist(self, event: NotificationEvent, recipient_id: str) -> bool:
        key = idempotency_key(event.id, recipient_id)
        with self._session_factory() as db:
            title, message = render_notification(event.type, self._names_for(db, event, recipient_id))
            meta = dict(event.meta)
            meta.setdefault("actor_id", event.actor_id)
            meta.setdefault("subject_id", event.subject_id)
            try:
                repo.insert_notification(
                    db,
                    recipient_id=recipient_id,
                    notification_type=event.type.value,
                    title=title,
                    message=message,
                    meta=meta,
                    idempotency_key=key,
                    now=datetime.now(timezone.utc),
                )
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.info("[notify] duplicate suppressed key=%s", key)
                return False
        logger.info("[notify] created type=%s recipient=%s event=%s", event.type.value, recipient_id, event.id)
        return True

    @staticmethod
    def _names_for(db, event: NotificationEvent, recipient_id: str) -> dict[str, Any]:
        parties = [str(p) for p in event.meta.get("parties", [])]
        counterpart = next((p for p in parties if p != recipient_id), None)
        ids = [i for i in (event.actor_id, event.subject_id, counterpart) if i]
        members = repo.get_members(db, ids) if ids else {}

        def name(member_id: str | None) -> str | None:
            if not member_id or member_id not in members:
                return None
            return members[member_id].get("display_name")

        return {
            "actor": name(event.actor_id),
            "subject": name(event.subject_id),
            "counterpart": name(counterpart),
            "text": event.meta.get("text"),
        }

    # read side

    def list_for_member(self, db, member_id: str, *, unread_only: bool = False, limit: int = 50) -> list[dict[str, Any]]:
        rows = repo.list_notifications_for_recipient(db, member_id, unread_only=unread_only, limit=limit)
        out = []
        for r in rows:
            item = dict(r)
            item["created_at"] = as_utc(item["created_at"]).isoformat()
            item.pop("idempotency_key", None)
            out.append(item)
        return out

    def unread_count(self, db, member_id: str) -> int:
        return repo.count_unread_notifications(db, member_id)

    def mark_read(self, db, member_id: str, notification_id: str) -> None:
        if not repo.mark_notification_read(db, notification_id=notification_id, recipient_id=member_id):
            raise NotFound("notification_missing", f"Notification {notification_id} not found")
