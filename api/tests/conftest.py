import os

# Must be set before matchlink modules read their config.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ.setdefault("TELEMETRY_TIMEZONE", "UTC")

import pytest

from matchlink import database, repo
from matchlink.container import build_services, reset_services, set_services
from matchlink.services.rate_limit import limiter


@pytest.fixture
def db(tmp_path):
    database.configure_engine(f"sqlite:///{tmp_path / 'matchlink.db'}")
    database.init_db()
    yield database.SessionLocal
    database.get_engine().dispose()


@pytest.fixture
def services(db):
    svc = build_services(db, notify_workers=0, reaper_interval_seconds=0)
    set_services(svc)
    limiter.reset()
    yield svc
    reset_services()


@pytest.fixture
def add_member(db):
    def _add(member_id: str, **fields):
        fields.setdefault("display_name", member_id.title())
        with db() as session:
            repo.upsert_member(session, member_id=member_id, **fields)
            session.commit()
        return member_id

    return _add


@pytest.fixture
def notifications_for(db):
    def _list(member_id: str, notification_type: str | None = None):
        with db() as session:
            rows = repo.list_notifications_for_recipient(session, member_id, limit=500)
        if notification_type:
            rows = [r for r in rows if r["type"] == notification_type]
        return rows

    return _list
