from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_member
from ..container import Services, get_services
from ..database import SessionLocal
from ..http_helpers import raise_http
from ..schemas import NotificationListResponse
from ..services.errors import EngineError

router = APIRouter()


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = False,
    limit: int = 50,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    with SessionLocal() as db:
        items = services.dispatcher.list_for_member(db, member["id"], unread_only=unread_only, limit=max(1, min(limit, 200)))
        unread = services.dispatcher.unread_count(db, member["id"])
    return {"items": items, "unread": unread}


@router.post("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, str]:
    try:
        with SessionLocal() as db:
            services.dispatcher.mark_read(db, member["id"], notification_id)
            db.commit()
    except EngineError as exc:
        raise_http(exc)
    return {"status": "ok"}
