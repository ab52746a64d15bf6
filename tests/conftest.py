"""
Test configuration and fixtures for WB Reports
"""
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

# In-memory database for the module-level engine; must precede wb_reports imports
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from requests.structures import CaseInsensitiveDict
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from wb_reports.api.client import RateLimitedHttpClient
from wb_reports.api.endpoints import WBEndpoints
from wb_reports.database.models import Base
from wb_reports.utils.config import PipelineConfig
from wb_reports.utils.rate_limiting import Sleeper
from wb_reports.utils.retry import RetryPolicy


# =============================================================================
# Fake upstream transport
# =============================================================================

class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, json_data: Any = None,
                 text: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.status_code = status_code
        if text is None:
            text = "" if json_data is None else json.dumps(json_data, ensure_ascii=False)
        self.text = text
        self.content = text.encode("utf-8")
        self.headers = CaseInsensitiveDict(headers or {})

    def json(self):
        return json.loads(self.text)


@dataclass
class Call:
    method: str
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    json: Any = None
    authorization: Optional[str] = None


class FakeUpstream:
    """
    Fake requests.Session routing by (method, path).

    A route is a list of responses served in order (the last one repeats),
    a callable (params, json) -> response or data, or a fixed response/data.
    Exceptions are raised instead of returned. Plain data becomes a 200 JSON
    response.
    """

    def __init__(self):
        self.routes: Dict[tuple, Any] = {}
        self.calls: List[Call] = []
        self.headers: Dict[str, str] = {}
        self.closed = False

    def route(self, method: str, path: str, handler: Any) -> None:
        self.routes[(method, path)] = handler

    def request(self, method, url, params=None, json=None, timeout=None):
        path = urlparse(url).path
        self.calls.append(Call(method, path, dict(params or {}), json, self.headers.get("Authorization")))

        handler = self.routes.get((method, path))
        if handler is None:
            return FakeResponse(404, {"detail": f"no route for {method} {path}"})

        if isinstance(handler, list):
            item = handler.pop(0) if len(handler) > 1 else handler[0]
        elif isinstance(handler, (FakeResponse, Exception)):
            item = handler
        elif callable(handler):
            item = handler(params or {}, json)
        else:
            item = handler

        if isinstance(item, Exception):
            raise item
        if isinstance(item, FakeResponse):
            return item
        return FakeResponse(200, item)

    def calls_to(self, path: str) -> List[Call]:
        return [c for c in self.calls if c.path == path]

    def close(self):
        self.closed = True


class RecordingSleeper(Sleeper):
    """Sleeper that records every suspension and returns immediately."""

    def __init__(self):
        self.calls = []

    async def sleep(self, seconds, phase, reason=""):
        self.calls.append((seconds, phase))

    def phases(self):
        return [phase for _, phase in self.calls]


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture
def respond():
    """FakeResponse factory: respond(status, json_data, text=..., headers=...)"""
    return FakeResponse


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Deterministic policy: no jitter, 3 attempts"""
    return RetryPolicy(max_attempts=3, base_delay=2.0, max_delay=60.0, jitter=0)


@pytest.fixture
def make_client(upstream, sleeper, retry_policy):
    """Factory: api key -> client wired to the fake upstream"""
    def _make(api_key: str = "test-api-key") -> RateLimitedHttpClient:
        return RateLimitedHttpClient(api_key, retry_policy=retry_policy, sleeper=sleeper, session=upstream)
    return _make


@pytest.fixture
def wb_client(make_client) -> RateLimitedHttpClient:
    return make_client()


@pytest.fixture
def endpoints() -> WBEndpoints:
    return WBEndpoints()


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig(ledger_page_size=1000, catalog_page_size=100, job_max_polls=5)


# =============================================================================
# Test Database Setup
# =============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite shared by all sessions of one test"""
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
def db_session(engine) -> Session:
    """Create a new database session for each test"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# FastAPI Test Client
# =============================================================================

@pytest.fixture
def api_client(db_session, make_client, sleeper, pipeline_config, endpoints) -> TestClient:
    """Create FastAPI test client with database and upstream overridden"""
    from wb_reports.api.main import app
    from wb_reports.api.routes.reports import get_report_service
    from wb_reports.database.connection import get_db
    from wb_reports.services.report_service import ReportService

    def override_get_db():
        yield db_session

    def override_report_service():
        return ReportService(db_session, client_factory=make_client, config=pipeline_config,
                             endpoints=endpoints, sleeper=sleeper)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_report_service] = override_report_service

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
