import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import LOG_LEVEL
from .container import get_services, reset_services
from .database import init_db, wait_for_db
from .routes import include_modular_routers

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Matchlink API")
include_modular_routers(app)

# Specific origins are required when the browser sends credentials.
ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    init_db()
    services = get_services()
    services.reaper.start()
    logger.info("[startup] engine ready reaper_running=%s", services.reaper.running)


@app.on_event("shutdown")
def on_shutdown() -> None:
    reset_services()
    logger.info("[shutdown] services stopped")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
