from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_member
from ..config import RL_VIEW_RECORD_LIMIT, RL_WINDOW_SECONDS
from ..container import Services, get_services
from ..http_helpers import raise_http
from ..schemas import ReceivedViewsResponse, SentViewsResponse, ViewAccepted
from ..services.domain import ViewRecord
from ..services.errors import EngineError
from ..services.rate_limit import member_rate_limit

router = APIRouter()

RL_VIEW_RECORD = member_rate_limit("view_record", RL_VIEW_RECORD_LIMIT, RL_WINDOW_SECONDS)


def _view_item(v: ViewRecord) -> dict[str, Any]:
    return {
        "id": v.id,
        "viewer_id": v.viewer_id,
        "candidate_id": v.candidate_id,
        "viewed_at": v.viewed_at,
        "week_start_date": str(v.week_start_date),
        "week_number": v.week_number,
    }


@router.post("/views/{candidate_id}", status_code=202, response_model=ViewAccepted, dependencies=[RL_VIEW_RECORD])
def record_view(
    candidate_id: str,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    try:
        view = services.telemetry.record(member["id"], candidate_id)
    except EngineError as exc:
        raise_http(exc)
    return {"status": "accepted", "recorded": view is not None}


@router.get("/views/received", response_model=ReceivedViewsResponse)
def received_views(
    limit: int = 100,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    views = services.telemetry.list_views_for_candidate(member["id"], limit=max(1, min(limit, 500)))
    return {
        "items": [_view_item(v) for v in views],
        "weekly": services.telemetry.weekly_counts(member["id"]),
    }


@router.get("/views/sent", response_model=SentViewsResponse)
def sent_views(
    limit: int = 100,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    views = services.telemetry.list_views_by_viewer(member["id"], limit=max(1, min(limit, 500)))
    return {"items": [_view_item(v) for v in views]}
