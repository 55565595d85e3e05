from typing import Any, Optional

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_member
from ..config import RL_FAVORITE_TOGGLE_LIMIT, RL_WINDOW_SECONDS
from ..container import Services, get_services
from ..http_helpers import raise_http
from ..schemas import FavoriteItem, FavoriteToggleResponse
from ..services.errors import EngineError
from ..services.rate_limit import member_rate_limit

router = APIRouter()

RL_FAVORITE_TOGGLE = member_rate_limit("favorite_toggle", RL_FAVORITE_TOGGLE_LIMIT, RL_WINDOW_SECONDS)


@router.post("/favorites/{kind}/{target_id}", response_model=FavoriteToggleResponse, dependencies=[RL_FAVORITE_TOGGLE])
def toggle_favorite(
    kind: str,
    target_id: str,
    on: Optional[bool] = None,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    try:
        present = services.favorites.toggle(member["id"], target_id, kind, on=on)
    except EngineError as exc:
        raise_http(exc)
    return {"target_id": target_id, "kind": kind, "member": present}


@router.get("/favorites/{kind}", response_model=list[FavoriteItem])
def list_favorites(
    kind: str,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> list[dict[str, Any]]:
    try:
        return services.favorites.list(member["id"], kind)
    except EngineError as exc:
        raise_http(exc)


@router.get("/favorites/{kind}/{target_id}", response_model=FavoriteToggleResponse)
def favorite_status(
    kind: str,
    target_id: str,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    try:
        present = services.favorites.contains(member["id"], target_id, kind)
    except EngineError as exc:
        raise_http(exc)
    return {"target_id": target_id, "kind": kind, "member": present}
