import logging
from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import require_operator
from ..container import Services, get_services
from ..http_helpers import raise_http
from ..schemas import ConnectionResponse, PurgeResponse
from ..services.errors import EngineError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_operator)])


@router.post("/connections/{request_id}/cancel", response_model=ConnectionResponse)
def operator_cancel_connection(request_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    try:
        connection = services.connections.cancel(request_id, operator=True)
    except EngineError as exc:
        raise_http(exc)
    logger.info("[admin] cancelled connection id=%s", request_id)
    return connection.to_dict()


@router.post("/telemetry/purge", response_model=PurgeResponse)
def purge_telemetry(services: Services = Depends(get_services)) -> dict[str, int]:
    return {"deleted": services.telemetry.purge_expired()}
