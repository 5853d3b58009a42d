"""
Pytest configuration and fixtures
"""

from typing import Any, Dict, List, Optional
from urllib.parse import unquote

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from core.config import Settings
from core.database import init_models

BASE_URL = "https://api.test.stackexchange.com/2.3"

CREATED = 1700000000
ACTIVE = 1700003600


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated from the environment, with fast retries"""
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'crawler.db'}",
        SO_BASE_URL=BASE_URL,
        SO_API_KEY="test_key",
        MAX_RETRY_ATTEMPTS=3,
        RETRY_BASE_DELAY=0.01,
        CHECKPOINT_PATH=str(tmp_path / "collection_progress.json"),
        CHECKPOINT_SAVE_INTERVAL=2,
    )


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """File-backed SQLite engine with foreign keys enforced"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'crawler.db'}",
        echo=False,
        poolclass=NullPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await init_models(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine):
    """Create database session for tests"""
    session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_maker() as session:
        yield session


# ----------------------------------------------------------------------
# API payloads
# ----------------------------------------------------------------------

def _owner(account_id: Optional[int]) -> Optional[Dict[str, Any]]:
    if account_id is None:
        return None
    return {
        "account_id": account_id,
        "user_id": account_id + 1000,
        "user_type": "registered",
        "display_name": f"user{account_id}",
        "reputation": 42,
        "link": f"https://stackoverflow.com/users/{account_id + 1000}",
        "profile_image": "https://example.com/avatar.png",
    }


@pytest.fixture
def make_question():
    def factory(question_id: int, answer_count: int = 0, tags=("java",),
                body: str = "<p>How?</p>", account_id: Optional[int] = 1) -> Dict[str, Any]:
        return {
            "question_id": question_id,
            "score": 3,
            "link": f"https://stackoverflow.com/q/{question_id}",
            "answer_count": answer_count,
            "view_count": 100,
            "content_license": "CC BY-SA 4.0",
            "title": f"Question {question_id}",
            "last_activity_date": ACTIVE,
            "creation_date": CREATED,
            "owner": _owner(account_id),
            "body": body,
            "tags": list(tags),
        }
    return factory


@pytest.fixture
def make_answer():
    def factory(answer_id: int, question_id: int, body: str = "<p>Like this</p>",
                account_id: Optional[int] = 2) -> Dict[str, Any]:
        return {
            "answer_id": answer_id,
            "question_id": question_id,
            "last_activity_date": ACTIVE,
            "creation_date": CREATED,
            "score": 1,
            "is_accepted": False,
            "content_license": "CC BY-SA 4.0",
            "body": body,
            "owner": _owner(account_id),
        }
    return factory


@pytest.fixture
def make_comment():
    def factory(comment_id: int, post_id: int, body: str = "Nice",
                account_id: Optional[int] = 3) -> Dict[str, Any]:
        return {
            "comment_id": comment_id,
            "post_id": post_id,
            "edited": False,
            "body": body,
            "creation_date": CREATED,
            "score": 0,
            "content_license": "CC BY-SA 4.0",
            "owner": _owner(account_id),
        }
    return factory


# ----------------------------------------------------------------------
# Fake Stack Exchange API
# ----------------------------------------------------------------------

class FakeStackExchange:
    """
    In-memory Stack Exchange API served through httpx.MockTransport.

    Question ids, answer ids and comment ids must not overlap, since
    comment routing only looks at post_id.
    """

    def __init__(self):
        self.questions: List[Dict[str, Any]] = []
        self.answers: List[Dict[str, Any]] = []
        self.comments: List[Dict[str, Any]] = []
        self.no_answer_total = 0
        self.requests: List[str] = []
        self.interrupt = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = unquote(request.url.path).split("/2.3/", 1)[-1]
        params = request.url.params
        self.requests.append((path, dict(params)))

        if self.interrupt is not None:
            self.interrupt(path)

        if params.get("filter") == "total":
            total = self.no_answer_total if path.endswith("no-answers") else len(self.questions)
            return httpx.Response(200, json={"total": total})

        parts = path.split("/")
        if parts == ["questions"]:
            items = self.questions
        elif len(parts) == 3 and parts[0] == "questions" and parts[2] == "answers":
            ids = {int(i) for i in parts[1].split(";")}
            items = [a for a in self.answers if a["question_id"] in ids]
        elif len(parts) == 3 and parts[2] == "comments":
            ids = {int(i) for i in parts[1].split(";")}
            items = [c for c in self.comments if c["post_id"] in ids]
        else:
            return httpx.Response(404, json={"error_id": 404, "error_name": "no_method"})

        page = int(params.get("page", 1))
        size = int(params.get("pagesize", 100))
        start = (page - 1) * size
        return httpx.Response(200, json={
            "items": items[start:start + size],
            "has_more": start + size < len(items),
            "quota_remaining": 9999,
        })

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def question_pages(self) -> List[int]:
        """Pages of the question listing requested so far"""
        return [
            int(params["page"])
            for path, params in self.requests
            if path == "questions" and params.get("filter") != "total"
        ]

    def count(self, suffix: str) -> int:
        return sum(1 for path, _ in self.requests if path.endswith(suffix))


@pytest.fixture
def fake_api() -> FakeStackExchange:
    return FakeStackExchange()
