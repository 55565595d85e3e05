from typing import NoReturn

from fastapi import HTTPException

from .config import MATCH_PAGE_SIZE, MATCH_PAGE_SIZE_MAX
from .services.errors import EngineError


def raise_http(exc: EngineError) -> NoReturn:
    raise HTTPException(status_code=exc.status_code, detail={"reason": exc.reason, "message": exc.detail}) from exc


def parse_cursor(raw: str | None) -> int:
    if raw is None or raw == "":
        return 0
    try:
        value = int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="cursor must be an integer offset")
    if value < 0:
        raise HTTPException(status_code=400, detail="cursor must be non-negative")
    return value


def clamp_limit(raw: int | None) -> int:
    if raw is None:
        return MATCH_PAGE_SIZE
    return max(1, min(int(raw), MATCH_PAGE_SIZE_MAX))
