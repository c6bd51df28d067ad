import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import verlic.models  # noqa: F401
from verlic.config import settings
from verlic.database import Base, get_db
from verlic.models import AuthorizedNumber, WhatsAppInstance
from verlic.services.conversation_context import ConversationContextStore
from verlic.services.llm.base import LLMProvider, LLMResponse

ADMIN_TOKEN = "test-admin-token"
INSTANCE_NAME = "verlic-test"


class FakeRedis:
    """In-memory stand-in for the async Redis client used by the context store."""

    def __init__(self, fail_on: Optional[set] = None):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail_on = fail_on or set()

    def _check(self, op: str) -> None:
        if op in self.fail_on:
            raise ConnectionError(f"redis {op} failed")

    async def get(self, key):
        self._check("get")
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check("set")
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        self._check("delete")
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


class FakeLLM(LLMProvider):
    def __init__(self, content: str = "Olá! Como posso ajudar?", total_tokens: int = 42, error: Exception = None):
        self.content = content
        self.total_tokens = total_tokens
        self.error = error
        self.calls: list[list[dict]] = []

    async def generate(self, messages, model=None, temperature=0.7, max_tokens=1024, timeout_seconds=None):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return LLMResponse(content=self.content, model="deepseek-chat", usage={"total_tokens": self.total_tokens})


class FakeGateway:
    """Evolution client double. ``send_result`` may be a bool or an exception to raise."""

    def __init__(self, configured: bool = True, send_result=True, state: str = "open"):
        self.is_configured = configured
        self.send_result = send_result
        self.state = state
        self.sent: list[tuple[str, str, str]] = []
        self.created: list[str] = []
        self.webhooks: list[tuple[str, str]] = []
        self.deleted: list[str] = []
        self.logged_out: list[str] = []
        self.restarted: list[str] = []
        self.remote_instances: list[dict] = []

    async def send_text(self, instance_name, phone_number, text):
        if isinstance(self.send_result, Exception):
            raise self.send_result
        self.sent.append((instance_name, phone_number, text))
        return self.send_result

    async def create_instance(self, instance_name):
        self.created.append(instance_name)
        return {"instance": {"instanceName": instance_name}}

    async def set_webhook(self, instance_name, webhook_url):
        self.webhooks.append((instance_name, webhook_url))
        return True

    async def get_qrcode(self, instance_name):
        return {"base64": "data:image/png;base64,QR", "code": "2@raw", "pairing_code": "ABCD1234"}

    async def get_connection_state(self, instance_name):
        return self.state

    async def get_instance_info(self, instance_name):
        return {"phone_number": "5511988887777", "profile_name": "Verlic Bot", "profile_picture_url": None}

    async def list_instances(self):
        return self.remote_instances

    async def logout_instance(self, instance_name):
        self.logged_out.append(instance_name)
        return True

    async def delete_instance(self, instance_name):
        self.deleted.append(instance_name)
        return True

    async def restart_instance(self, instance_name):
        self.restarted.append(instance_name)
        return True


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Real SQLAlchemy session on an in-memory SQLite database."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def context_store(fake_redis):
    return ConversationContextStore(fake_redis, ttl_seconds=3600, max_messages=20)


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


def make_instance(db, name: str = INSTANCE_NAME, status: str = "disconnected", **kwargs) -> WhatsAppInstance:
    now = datetime.now(timezone.utc)
    instance = WhatsAppInstance(instance_name=name, status=status, created_at=now, updated_at=now, **kwargs)
    db.add(instance)
    db.commit()
    db.refresh(instance)
    return instance


def make_authorized(
    db,
    instance: WhatsAppInstance,
    phone_number: str,
    name: Optional[str] = None,
    is_active: bool = True,
    age_seconds: int = 0,
) -> AuthorizedNumber:
    number = AuthorizedNumber(
        instance_id=instance.id,
        phone_number=phone_number,
        name=name,
        is_active=is_active,
        created_at=datetime.now(timezone.utc) - timedelta(seconds=age_seconds),
    )
    db.add(number)
    db.commit()
    db.refresh(number)
    return number


def text_envelope(
    remote_jid: str = "5511999998888@s.whatsapp.net",
    text: str = "Oi, tudo bem?",
    from_me: bool = False,
    instance: str = INSTANCE_NAME,
    **key_extra,
) -> dict:
    return {
        "event": "messages.upsert",
        "instance": instance,
        "data": {
            "key": {"remoteJid": remote_jid, "fromMe": from_me, "id": "3EB0ABC", **key_extra},
            "pushName": "Cliente",
            "message": {"conversation": text},
            "messageType": "conversation",
        },
    }


@pytest.fixture
def instance(db_session):
    return make_instance(db_session)


@pytest.fixture
def admin_headers(monkeypatch):
    monkeypatch.setattr(settings, "admin_token", ADMIN_TOKEN)
    return {"X-Admin-Token": ADMIN_TOKEN}


@pytest.fixture
def api_client(db_session, fake_gateway, fake_llm, context_store):
    """TestClient wired to the SQLite session and fake collaborators."""
    from verlic.main import app
    from verlic.routers.deps import get_context_store, get_gateway, get_llm

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_llm] = lambda: fake_llm
    app.dependency_overrides[get_context_store] = lambda: context_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
