"""Process-wide wiring of the engine services."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable

from .config import COMPAT_CACHE_SIZE, COMPAT_CACHE_TTL_SECONDS, NOTIFY_WORKERS, REAPER_INTERVAL_SECONDS
from .database import SessionLocal
from .services.compat_cache import CompatibilityCache
from .services.compatibility import CompatibilityEngine
from .services.connections import ConnectionLifecycle
from .services.directory import ProfileDirectory
from .services.favorites import FavoritesRegistry
from .services.notifications import NotificationDispatcher
from .services.telemetry import TelemetryReaper, ViewTelemetry


@dataclass
class Services:
    directory: ProfileDirectory
    compatibility: CompatibilityEngine
    dispatcher: NotificationDispatcher
    connections: ConnectionLifecycle
    favorites: FavoritesRegistry
    telemetry: ViewTelemetry
    reaper: TelemetryReaper


def build_services(
    session_factory: Callable[[], Any] = SessionLocal,
    *,
    notify_workers: int = NOTIFY_WORKERS,
    reaper_interval_seconds: int = REAPER_INTERVAL_SECONDS,
    **engine_options: Any,
) -> Services:
    directory = ProfileDirectory()
    compatibility = CompatibilityEngine(
        directory,
        cache=CompatibilityCache(COMPAT_CACHE_SIZE, COMPAT_CACHE_TTL_SECONDS),
        **engine_options,
    )
    dispatcher = NotificationDispatcher(session_factory, workers=notify_workers)
    telemetry = ViewTelemetry(session_factory, directory, dispatcher)
    return Services(
        directory=directory,
        compatibility=compatibility,
        dispatcher=dispatcher,
        connections=ConnectionLifecycle(session_factory, directory, compatibility, dispatcher),
        favorites=FavoritesRegistry(session_factory, directory, compatibility, dispatcher),
        telemetry=telemetry,
        reaper=TelemetryReaper(telemetry, reaper_interval_seconds),
    )


_services: Services | None = None
_lock = threading.Lock()


def get_services() -> Services:
    global _services
    with _lock:
        if _services is None:
            _services = build_services()
        return _services


def set_services(services: Services | None) -> None:
    global _services
    with _lock:
        _services = services


def reset_services() -> None:
    global _services
    with _lock:
        current, _services = _services, None
    if current is not None:
        current.reaper.stop()
        current.dispatcher.shutdown()
