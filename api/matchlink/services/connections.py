"""
Connection request lifecycle.

Every transition is a single conditional UPDATE against the request's current
status, and at most one active request may exist per unordered member pair
(enforced by the unique ``active_pair_key`` column). Notifications are handed
to the dispatcher only after the transition has committed.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError

from .. import repo
from .compatibility import CompatibilityEngine
from .directory import ProfileDirectory, guard_not_self
from .domain import Connection, ConnectionStatus, HiddenReason, NotificationEvent, NotificationType
from .errors import Conflict, Forbidden, InvalidTransition, NotFound
from .notifications import NotificationDispatcher
from .state_machine import LEGAL_PREDECESSORS, TERMINAL_STATUSES, active_pair_key, is_repeat, transition_status

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionLifecycle:
    def __init__(
        self,
        session_factory: Callable[[], Any],
        directory: ProfileDirectory,
        compatibility: CompatibilityEngine,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._session_factory = session_factory
        self.directory = directory
        self.compatibility = compatibility
        self.dispatcher = dispatcher
        self._clock = clock

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def create(self, requester_id: str, target_id: str) -> Connection:
        guard_not_self(requester_id, target_id)
        key = active_pair_key(requester_id, target_id)
        now = self._clock()
        with self._session_factory() as db:
            self.directory.ensure_exists(db, requester_id, target_id)
            if repo.find_active_request_for_pair(db, key):
                raise Conflict("active_request_exists", "An active request already exists for this pair")
            if not self.compatibility.is_discoverable(db, requester_id, target_id):
                raise Forbidden("target_not_discoverable", "Target is not available for connection requests")
            try:
                row = repo.insert_connection_request(
                    db,
                    requester_id=requester_id,
                    target_id=target_id,
                    status=ConnectionStatus.PENDING.value,
                    active_pair_key=key,
                    now=now,
                )
                self.compatibility.hide_pair(db, requester_id, target_id, HiddenReason.BY_REQUEST)
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                logger.info("[connections] create lost race requester=%s target=%s", requester_id, target_id)
                raise Conflict("active_request_exists", "An active request already exists for this pair") from exc
        connection = Connection.from_row(row)
        logger.info("[connections] created id=%s requester=%s target=%s", connection.id, requester_id, target_id)

        meta = {"request_id": connection.id, "parties": [requester_id, target_id]}
        self.dispatcher.dispatch(
            NotificationEvent(
                id=str(uuid.uuid4()),
                type=NotificationType.REQUEST_SENT,
                recipients=[requester_id],
                actor_id=requester_id,
                subject_id=target_id,
                meta=meta,
            )
        )
        self.dispatcher.dispatch(
            NotificationEvent(
                id=str(uuid.uuid4()),
                type=NotificationType.REQUEST_RECEIVED,
                recipients=[target_id],
                actor_id=requester_id,
                subject_id=target_id,
                meta=meta,
            )
        )
        return connection

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------

    def accept(self, request_id: str, actor_id: str) -> Connection:
        return self._transition(request_id, "accept", actor_id=actor_id)

    def reject(self, request_id: str, actor_id: str) -> Connection:
        return self._transition(request_id, "reject", actor_id=actor_id)

    def withdraw(self, request_id: str, actor_id: str, *, hide: bool = False) -> Connection:
        """Requester pulls back a pending request. ``hide`` keeps the target out of their matches."""
        return self._transition(request_id, "withdraw", actor_id=actor_id, hide=hide)

    def cancel(self, request_id: str, actor_id: str | None = None, *, operator: bool = False) -> Connection:
        return self._transition(request_id, "cancel", actor_id=actor_id, operator=operator)

    @staticmethod
    def _authorize(connection: Connection, action: str, actor_id: str | None, operator: bool) -> None:
        if action == "cancel" and operator:
            return
        if actor_id not in (connection.requester_id, connection.target_id):
            raise Forbidden("not_a_party", "Actor is not a party to this request")
        if action in ("accept", "reject") and actor_id != connection.target_id:
            raise Forbidden("not_target", f"Only the recipient can {action} a request")
        if action == "withdraw" and actor_id != connection.requester_id:
            raise Forbidden("not_requester", "Only the requester can withdraw a request")

    def _transition(
        self,
        request_id: str,
        action: str,
        *,
        actor_id: str | None = None,
        operator: bool = False,
        hide: bool = False,
    ) -> Connection:
        now = self._clock()
        with self._session_factory() as db:
            row = repo.get_connection_request(db, request_id)
            if not row:
                raise NotFound("request_missing", f"Request {request_id} not found")
            current = Connection.from_row(row)
            self._authorize(current, action, actor_id, operator)

            next_status = transition_status(current.status, action)
            if is_repeat(current.status, action):
                logger.info("[connections] %s replayed id=%s status=%s", action, request_id, current.status.value)
                return current

            updated = repo.compare_and_set_request_status(
                db,
                request_id=request_id,
                expected_statuses=[s.value for s in LEGAL_PREDECESSORS[action]],
                new_status=next_status.value,
                release_pair=next_status in TERMINAL_STATUSES,
                now=now,
            )
            if not updated:
                db.rollback()
                latest = Connection.from_row(repo.get_connection_request(db, request_id))
                if is_repeat(latest.status, action):
                    return latest
                logger.info("[connections] %s lost race id=%s now=%s", action, request_id, latest.status.value)
                raise InvalidTransition(latest.status.value, action)

            if next_status in TERMINAL_STATUSES:
                self._release_visibility(db, current, hide=hide and action == "withdraw")
            db.commit()
            result = Connection.from_row(repo.get_connection_request(db, request_id))

        logger.info(
            "[connections] %s id=%s %s->%s actor=%s operator=%s",
            action,
            request_id,
            current.status.value,
            result.status.value,
            actor_id,
            operator,
        )
        event = self._event_for(action, result, actor_id, operator)
        if event is not None:
            self.dispatcher.dispatch(event)
        return result

    def _release_visibility(self, db, connection: Connection, *, hide: bool) -> None:
        requester, target = connection.requester_id, connection.target_id
        if not hide:
            self.compatibility.restore_pair(db, requester, target)
            return
        self.compatibility.restore_visibility(db, target, requester)
        self.compatibility.hide(db, requester, target, HiddenReason.BY_REQUEST)

    @staticmethod
    def _event_for(action: str, connection: Connection, actor_id: str | None, operator: bool) -> NotificationEvent | None:
        meta = {"request_id": connection.id, "parties": [connection.requester_id, connection.target_id]}
        if action == "accept":
            notification_type, recipients = NotificationType.REQUEST_ACCEPTED, [connection.requester_id]
        elif action == "reject":
            notification_type, recipients = NotificationType.REQUEST_REJECTED, [connection.requester_id]
        elif action == "cancel":
            notification_type = NotificationType.REQUEST_CANCELLED
            if operator or actor_id is None:
                recipients = [connection.requester_id, connection.target_id]
                meta["by_operator"] = True
            else:
                recipients = [connection.counterpart_of(actor_id)]
        else:
            return None
        return NotificationEvent(
            id=str(uuid.uuid4()),
            type=notification_type,
            recipients=recipients,
            actor_id=None if operator else actor_id,
            subject_id=connection.target_id if actor_id == connection.requester_id else connection.requester_id,
            meta=meta,
        )

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def get(self, request_id: str, actor_id: str) -> Connection:
        with self._session_factory() as db:
            row = repo.get_connection_request(db, request_id)
        if not row:
            raise NotFound("request_missing", f"Request {request_id} not found")
        connection = Connection.from_row(row)
        if actor_id not in (connection.requester_id, connection.target_id):
            raise Forbidden("not_a_party", "Actor is not a party to this request")
        return connection

    def list_sent(self, member_id: str) -> list[Connection]:
        with self._session_factory() as db:
            rows = repo.list_requests_sent(db, member_id)
        return [Connection.from_row(r) for r in rows]

    def list_received(self, member_id: str) -> list[Connection]:
        with self._session_factory() as db:
            rows = repo.list_requests_received(db, member_id)
        return [Connection.from_row(r) for r in rows]

    def counts(self, member_id: str) -> dict[str, int]:
        with self._session_factory() as db:
            return repo.count_requests(db, member_id)
