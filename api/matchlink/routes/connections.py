from typing import Any, Literal

from fastapi import APIRouter, Body, Depends

from ..auth.deps import get_current_member
from ..config import RL_CONNECTION_CREATE_LIMIT, RL_CONNECTION_UPDATE_LIMIT, RL_WINDOW_SECONDS
from ..container import Services, get_services
from ..http_helpers import raise_http
from ..schemas import (
    ConnectionListResponse,
    ConnectionResponse,
    ConnectionSummary,
    CreateConnectionRequest,
    WithdrawRequest,
)
from ..services.errors import EngineError
from ..services.rate_limit import member_rate_limit

router = APIRouter()

RL_CONNECTION_CREATE = member_rate_limit("connection_create", RL_CONNECTION_CREATE_LIMIT, RL_WINDOW_SECONDS)
RL_CONNECTION_UPDATE = member_rate_limit("connection_update", RL_CONNECTION_UPDATE_LIMIT, RL_WINDOW_SECONDS)


@router.post("/connections", status_code=201, response_model=ConnectionResponse, dependencies=[RL_CONNECTION_CREATE])
def create_connection(
    payload: CreateConnectionRequest,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    try:
        return services.connections.create(member["id"], payload.target_id).to_dict()
    except EngineError as exc:
        raise_http(exc)


@router.get("/connections", response_model=ConnectionListResponse)
def list_connections(
    direction: Literal["sent", "received"] = "sent",
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    if direction == "sent":
        items = services.connections.list_sent(member["id"])
    else:
        items = services.connections.list_received(member["id"])
    return {"direction": direction, "items": [c.to_dict() for c in items]}


@router.get("/connections/summary", response_model=ConnectionSummary)
def connection_summary(
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, int]:
    return services.connections.counts(member["id"])


@router.get("/connections/{request_id}", response_model=ConnectionResponse)
def get_connection(
    request_id: str,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    try:
        return services.connections.get(request_id, member["id"]).to_dict()
    except EngineError as exc:
        raise_http(exc)


@router.post("/connections/{request_id}/accept", response_model=ConnectionResponse, dependencies=[RL_CONNECTION_UPDATE])
def accept_connection(
    request_id: str,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    try:
        return services.connections.accept(request_id, member["id"]).to_dict()
    except EngineError as exc:
        raise_http(exc)


@router.post("/connections/{request_id}/reject", response_model=ConnectionResponse, dependencies=[RL_CONNECTION_UPDATE])
def reject_connection(
    request_id: str,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    try:
        return services.connections.reject(request_id, member["id"]).to_dict()
    except EngineError as exc:
        raise_http(exc)


@router.post("/connections/{request_id}/withdraw", response_model=ConnectionResponse, dependencies=[RL_CONNECTION_UPDATE])
def withdraw_connection(
    request_id: str,
    payload: WithdrawRequest | None = Body(default=None),
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    hide = bool(payload and payload.hide)
    try:
        return services.connections.withdraw(request_id, member["id"], hide=hide).to_dict()
    except EngineError as exc:
        raise_http(exc)


@router.post("/connections/{request_id}/cancel", response_model=ConnectionResponse, dependencies=[RL_CONNECTION_UPDATE])
def cancel_connection(
    request_id: str,
    member: dict[str, Any] = Depends(get_current_member),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    try:
        return services.connections.cancel(request_id, member["id"]).to_dict()
    except EngineError as exc:
        raise_http(exc)
