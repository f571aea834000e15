from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


@pytest.fixture(autouse=True)
def _safe_test_config(monkeypatch):
    """Force deterministic, offline-safe config for tests.

    The repo loads .env on import; these overrides prevent real network calls
    (OpenAI/Google) and reduce test flakiness.
    """
    from kitbot.config import config, Config

    overrides = {
        "OPENAI_API_KEY": "test",
        "GOOGLE_CREDENTIALS_JSON": "",
        "GOOGLE_CREDENTIALS_FILE": "/nonexistent/google_credentials.json",
        "API_KEY": "",
        "HISTORY_WINDOW": 10,
        "SENDER_COOLDOWN_SECONDS": 0,
        "TOUR_VIDEO_FALLBACK_PATH": "/nonexistent/tour_video.mp4",
        "WHATSAPP_GATEWAY_URL": "",
        "WHATSAPP_GATEWAY_API_KEY": "",
    }
    for key, value in overrides.items():
        monkeypatch.setattr(Config, key, value, raising=False)
        # Keep the instance in sync for any code that reads instance attributes directly.
        monkeypatch.setattr(config, key, value, raising=False)

    # Never reach the real OpenAI API; tests that need a model install a FakeOpenAI.
    from kitbot import agent as agent_module

    monkeypatch.setattr(agent_module, "client", None, raising=True)

    return config


@pytest.fixture
def db_session():
    """In-memory SQLite session with every table created."""
    from kitbot.database import Base
    from kitbot import db_models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def add_kitnet(db_session):
    """Insert a kitnet row: add_kitnet(number, price, status="livre", video=None)."""
    from kitbot.db_models import DBKitnet

    def _add(number, price, status="livre", description=None, video=None):
        kitnet = DBKitnet(number=number, price=price, status=status, description=description, video=video)
        db_session.add(kitnet)
        db_session.commit()
        return kitnet

    return _add


class RecordingMediaSender:
    """MediaSender test double that remembers every dispatch."""

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, sender_id, file_path, mime_type, file_name, caption):
        self.calls.append({
            "sender_id": sender_id,
            "file_path": file_path,
            "mime_type": mime_type,
            "file_name": file_name,
            "caption": caption,
        })
        if self.error is not None:
            raise self.error


class FakeCalendar:
    """Calendar collaborator double."""

    def __init__(self, link="https://calendar.google.com/event?eid=abc", free=True, error=None):
        self.link = link
        self.free = free
        self.error = error
        self.events = []
        self.availability_checks = []

    def check_availability(self, date_time):
        self.availability_checks.append(date_time)
        return self.free

    def create_event(self, phone, date_time, name=None):
        self.events.append({"phone": phone, "date_time": date_time, "name": name})
        if self.error is not None:
            raise self.error
        return self.link


def tool_call(call_id, name, arguments="{}"):
    return SimpleNamespace(id=call_id, type="function", function=SimpleNamespace(name=name, arguments=arguments))


def completion(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    """Scripted stand-in for openai.OpenAI: returns (or raises) queued responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        # Snapshot the messages: the agent keeps appending to the same list.
        snapshot = dict(kwargs)
        snapshot["messages"] = [dict(m) for m in kwargs["messages"]]
        self.calls.append(snapshot)
        if not self.responses:
            raise AssertionError("unexpected completion call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def media_sender():
    return RecordingMediaSender()


@pytest.fixture
def fake_calendar():
    return FakeCalendar()


@pytest.fixture
def install_llm(monkeypatch):
    """install_llm(*responses) -> FakeOpenAI wired in as the agent's client."""
    from kitbot import agent as agent_module

    def _install(*responses):
        fake = FakeOpenAI(*responses)
        monkeypatch.setattr(agent_module, "client", fake, raising=True)
        return fake

    return _install
