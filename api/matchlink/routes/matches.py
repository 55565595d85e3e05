from typing import Any, Optional

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_member
from ..container import Services, get_services
from ..database import SessionLocal
from ..http_helpers import clamp_limit, parse_cursor, raise_http
from ..schemas import CompatibilityResponse, MatchPage
from ..services.errors import EngineError

router = APIRouter()


@router.get("/matches", response_model=MatchPage)
def list_matches(
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    offset = parse_cursor(cursor)
    try:
        with SessionLocal() as db:
            items, next_cursor = services.compatibility.ranked_matches(
                db, member["id"], cursor=offset, limit=clamp_limit(limit)
            )
            db.commit()
    except EngineError as exc:
        raise_http(exc)
    return {"items": items, "next_cursor": str(next_cursor) if next_cursor is not None else None}


@router.get("/matches/{candidate_id}", response_model=CompatibilityResponse)
def get_match(
    candidate_id: str,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    try:
        with SessionLocal() as db:
            record = services.compatibility.get_or_compute(db, member["id"], candidate_id)
            db.commit()
    except EngineError as exc:
        raise_http(exc)
    return record.to_dict()
