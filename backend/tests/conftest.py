import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine

import support_portal.models  # noqa: F401
from support_portal.api.deps import get_email_transport
from support_portal.db import session as session_mod
from support_portal.db.session import get_session
from support_portal.main import app


class FakeTransport:
    """Records messages instead of calling Brevo; set ``fail_with`` to make sends raise."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send(self, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(message)
        return f"<msg-{len(self.sent)}@test>"

    def check_credentials(self):
        return {"configured": True, "keyValid": True, "senderEmail": "noreply@example.com", "account": None}


class DummyCelery:
    def __init__(self):
        self.calls = []

    def send_task(self, *args, **kwargs):
        self.calls.append((args, kwargs))

        class _Result:
            id = "task-1"

        return _Result()


@pytest.fixture()
def engine(tmp_path):
    # file-backed so separate sessions really are separate connections
    engine = create_engine(
        f"sqlite:///{tmp_path / 'portal.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def celery_stub():
    return DummyCelery()


@pytest.fixture()
def ticket_data():
    def make(**overrides):
        data = {
            "company_name": "Acme",
            "contact_person": "Jane Doe",
            "email": "a@b.com",
            "country": "Turkey",
            "product_model": "Combi Oven X10",
            "equipment_serial_no": "SN-1",
            "order_invoice_no": "INV-1",
            "issue_type": "Technical issue",
            "subject": "Oven broken",
            "description": "Stops heating after ten minutes.",
            "priority": "Critical",
            "attachments": [],
        }
        data.update(overrides)
        return data

    return make


@pytest.fixture()
def client(engine, transport, celery_stub, monkeypatch):
    def override_get_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_email_transport] = lambda: transport
    monkeypatch.setattr(session_mod, "engine", engine, raising=False)

    import support_portal.api.routes.notifications as notifications_mod

    monkeypatch.setattr(notifications_mod, "celery_app", celery_stub)

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
