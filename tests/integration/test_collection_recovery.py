"""
End-to-end collection against a fake API and SQLite, including a crash and resume
"""

import httpx
import pytest
from sqlalchemy import func, select
from unittest.mock import AsyncMock, patch

from core.exceptions import RequestFailed
from crawler.checkpoint import CollectionCheckpoint
from crawler.client import ApiClient
from crawler.collector import DataCollector
from crawler.loaders.postgres_loader import PostgresLoader
from crawler.stackoverflow import StackOverflowService
from crawler.state import CollectionState
from models.last_update import LastUpdate
from models.posts import Question as QuestionRow, Answer as AnswerRow, Comment as CommentRow


class ProcessKilled(BaseException):
    """Simulated kill: not an Exception, so nothing on the way up handles it"""


async def row_count(engine, model) -> int:
    async with engine.connect() as conn:
        return (await conn.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.fixture
def populated_api(fake_api, make_question, make_answer, make_comment):
    for question_id in range(1, 6):
        fake_api.questions.append(make_question(question_id, answer_count=1))
        fake_api.answers.append(make_answer(100 + question_id, question_id))
        fake_api.comments.append(make_comment(1000 + question_id, question_id))
        fake_api.comments.append(make_comment(2000 + question_id, 100 + question_id))
    fake_api.no_answer_total = 0
    return fake_api


def build_collector(settings, api, engine):
    client = ApiClient(settings, http_client=api.http_client())
    service = StackOverflowService(client, page_size=2, tagged="java")
    checkpoint = CollectionCheckpoint.load(settings.CHECKPOINT_PATH, settings.CHECKPOINT_SAVE_INTERVAL)
    loader = PostgresLoader(engine, batch_size=3)
    return DataCollector(service, loader, checkpoint, page_size=2, chunk_size=2)


@pytest.mark.asyncio
async def test_full_collection(test_settings, populated_api, test_engine):
    collector = build_collector(test_settings, populated_api, test_engine)

    async with collector.loader.bulk_load():
        await collector.collect_data()

    assert collector.checkpoint.state is CollectionState.COMPLETED
    assert populated_api.question_pages() == [1, 2, 3]
    assert await row_count(test_engine, QuestionRow) == 5
    assert await row_count(test_engine, AnswerRow) == 5
    assert await row_count(test_engine, CommentRow) == 10
    assert await row_count(test_engine, LastUpdate) == 1


@pytest.mark.asyncio
async def test_resume_after_kill_during_answers(test_settings, populated_api, test_engine):
    def kill_on_second_answer_batch(path):
        if path.endswith("/answers") and populated_api.count("/answers") == 2:
            raise ProcessKilled()

    populated_api.interrupt = kill_on_second_answer_batch
    collector = build_collector(test_settings, populated_api, test_engine)

    with pytest.raises(ProcessKilled):
        await collector.collect_data()

    # What survived on disk is what the next process sees
    restarted = build_collector(test_settings, populated_api, test_engine)
    assert restarted.checkpoint.state is CollectionState.COLLECTING_ANSWERS
    assert len(restarted.questions) == 5
    assert restarted.checkpoint.current_batch_index == 1

    populated_api.interrupt = None
    pages_before = populated_api.question_pages()

    await restarted.collect_data()

    assert restarted.checkpoint.state is CollectionState.COMPLETED
    # No question page was fetched again
    assert populated_api.question_pages() == pages_before
    assert await row_count(test_engine, QuestionRow) == 5
    assert await row_count(test_engine, AnswerRow) == 5
    assert await row_count(test_engine, CommentRow) == 10


@pytest.mark.asyncio
async def test_api_outage_fails_then_recovers(test_settings, populated_api, test_engine):
    def outage(path):
        if "/comments" in path:
            raise httpx.ConnectError("peer went away")

    populated_api.interrupt = outage
    collector = build_collector(test_settings, populated_api, test_engine)

    with patch("crawler.client.asyncio.sleep", new_callable=AsyncMock):
        with pytest.raises(RequestFailed):
            await collector.collect_data()

    assert collector.checkpoint.state is CollectionState.FAILED

    populated_api.interrupt = None
    restarted = build_collector(test_settings, populated_api, test_engine)
    pages_before = populated_api.question_pages()

    await restarted.collect_data()

    assert restarted.checkpoint.state is CollectionState.COMPLETED
    assert populated_api.question_pages() == pages_before
    assert await row_count(test_engine, CommentRow) == 10
