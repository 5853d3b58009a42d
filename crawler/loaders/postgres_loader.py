"""
Load collected records into the relational store with insert-or-skip writes.

Every row is inserted with ON CONFLICT DO NOTHING, so persisting the same
catalog twice leaves the tables unchanged. Relation rows (tags, extracted
identifiers) are written in the same flush as their posts.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from core.exceptions import PersistenceError
from crawler.transformers.identifiers import IdentifierExtractor, JavaApiExtractor
from models.last_update import LastUpdate
from models.owner import Owner as OwnerRow
from models.posts import Question as QuestionRow, Answer as AnswerRow, Comment as CommentRow
from models.relations import Tag, Api, TagQuestion, QuestionApi, AnswerApi, CommentApi
from schemas.stackoverflow import Owner, Question, Answer, Comment
import logging

logger = logging.getLogger(__name__)

# Statements that suspend and restore foreign key enforcement per dialect
INTEGRITY_TOGGLES = {
    "postgresql": (
        "SET session_replication_role = replica",
        "SET session_replication_role = DEFAULT",
    ),
    "sqlite": (
        "PRAGMA foreign_keys = OFF",
        "PRAGMA foreign_keys = ON",
    ),
}


class _Batch:
    """Rows pending for one flush, keyed by table and primary key."""

    def __init__(self):
        self.size = 0
        self.rows: Dict[Any, Dict[Any, Dict[str, Any]]] = {}

    def add(self, table, key, row: Dict[str, Any]):
        self.rows.setdefault(table, {}).setdefault(key, row)

    def clear(self):
        self.size = 0
        self.rows = {}


class PostgresLoader:
    """
    Batched, transactional writer for questions, answers and comments.

    Ensures:
    - No duplicate rows on repeated runs (insert-or-skip)
    - Parents written before children within a flush
    - A commit every ``batch_size`` records, plus a final partial flush
    - Rollback and PersistenceError on any statement failure

    Args:
        engine: Async engine owning the connection pool
        extractor: Identifier extractor applied to every body
        batch_size: Records per committed batch (default: 1000)
    """

    def __init__(
        self,
        engine: AsyncEngine,
        extractor: Optional[IdentifierExtractor] = None,
        batch_size: int = 1000
    ):
        self.engine = engine
        self.extractor = extractor or JavaApiExtractor()
        self.batch_size = max(1, batch_size)
        self._bulk_load = False

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def _insert(self, table):
        if self.dialect == "postgresql":
            return postgresql.insert(table)
        if self.dialect == "sqlite":
            return sqlite.insert(table)
        raise PersistenceError(
            "Unsupported database dialect",
            context={"dialect": self.dialect}
        )

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def bulk_load(self) -> AsyncIterator["PostgresLoader"]:
        """
        Suspend foreign key enforcement for connections opened inside the block.

        Lets relation rows land before their parents. Enforcement is restored
        on each connection before it goes back to the pool.

        The toggle is committed on its own, ahead of the data transactions.
        Both ``session_replication_role`` and ``PRAGMA foreign_keys`` are
        connection settings, so they hold for every later transaction on that
        connection; SQLite also ignores the pragma inside an open transaction.
        """
        previous = self._bulk_load
        self._bulk_load = True
        logger.info("Bulk load mode enabled")
        try:
            yield self
        finally:
            self._bulk_load = previous
            logger.info("Bulk load mode disabled")

    async def _set_integrity(self, conn: AsyncConnection, enabled: bool):
        toggles = INTEGRITY_TOGGLES.get(self.dialect)
        if toggles is None:
            return
        await conn.execute(text(toggles[1] if enabled else toggles[0]))
        # Outside a data transaction so SQLite applies the pragma
        await conn.commit()

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[AsyncConnection]:
        async with self.engine.connect() as conn:
            bulk = self._bulk_load
            if bulk:
                await self._set_integrity(conn, enabled=False)
            try:
                yield conn
            except Exception:
                await conn.rollback()
                raise
            finally:
                if bulk:
                    await self._set_integrity(conn, enabled=True)

    # ------------------------------------------------------------------
    # Row builders
    # ------------------------------------------------------------------

    @staticmethod
    def _owner_row(owner: Owner) -> Dict[str, Any]:
        return {
            "account_id": owner.account_id,
            "user_id": owner.user_id,
            "profile_image": owner.profile_image,
            "link": owner.link,
            "user_type": owner.user_type,
            "display_name": owner.display_name,
            "reputation": owner.reputation,
        }

    def _add_identifiers(self, batch: _Batch, link_table, key_name: str, key: int, body: str):
        for name, count in self.extractor.extract(body).items():
            batch.add(Api, name, {"api_name": name})
            batch.add(link_table, (key, name), {key_name: key, "api_name": name, "count": count})

    def _stage_question(self, batch: _Batch, question: Question):
        owner = question.owner
        batch.add(OwnerRow, owner.account_id, self._owner_row(owner))
        batch.add(QuestionRow, question.question_id, {
            "question_id": question.question_id,
            "score": question.score,
            "link": question.link,
            "answer_count": question.answer_count,
            "view_count": question.view_count,
            "content_license": question.content_license,
            "title": question.title,
            "last_activity_date": question.last_activity_date,
            "last_edit_date": question.last_edit_date,
            "creation_date": question.creation_date,
            "account_id": owner.account_id,
            "body": question.body,
        })
        for tag in question.tags:
            batch.add(Tag, tag, {"tag_name": tag})
            batch.add(TagQuestion, (tag, question.question_id), {"tag_name": tag, "question_id": question.question_id})

        self._add_identifiers(batch, QuestionApi, "question_id", question.question_id, question.body)

    def _stage_answer(self, batch: _Batch, answer: Answer):
        owner = answer.owner
        batch.add(OwnerRow, owner.account_id, self._owner_row(owner))
        batch.add(AnswerRow, answer.answer_id, {
            "answer_id": answer.answer_id,
            "last_activity_date": answer.last_activity_date,
            "last_edit_date": answer.last_edit_date,
            "creation_date": answer.creation_date,
            "score": answer.score,
            "is_accepted": answer.is_accepted,
            "content_license": answer.content_license,
            "question_id": answer.question_id,
            "body": answer.body,
            "account_id": owner.account_id,
        })
        self._add_identifiers(batch, AnswerApi, "answer_id", answer.answer_id, answer.body)

    def _stage_comment(self, batch: _Batch, comment: Comment):
        owner = comment.owner
        batch.add(OwnerRow, owner.account_id, self._owner_row(owner))
        batch.add(CommentRow, comment.comment_id, {
            "comment_id": comment.comment_id,
            "edited": comment.edited,
            "post_id": comment.post_id,
            "body": comment.body,
            "creation_date": comment.creation_date,
            "score": comment.score,
            "content_license": comment.content_license,
            "account_id": owner.account_id,
        })
        self._add_identifiers(batch, CommentApi, "comment_id", comment.comment_id, comment.body)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _flush(self, conn: AsyncConnection, batch: _Batch, tables: Sequence):
        # Parents first: owner, post, tag, api, then the join tables
        for table in tables:
            rows = batch.rows.get(table)
            if rows:
                await conn.execute(self._insert(table).on_conflict_do_nothing(), list(rows.values()))
        await conn.commit()
        batch.clear()

    async def _batch_insert(
        self,
        kind: str,
        records: Iterable,
        stage: Callable[[_Batch, Any], None],
        tables: Sequence
    ) -> int:
        count = 0
        batch = _Batch()

        try:
            async with self._connection() as conn:
                for record in records:
                    stage(batch, record)
                    batch.size += 1
                    count += 1

                    if batch.size >= self.batch_size:
                        await self._flush(conn, batch, tables)
                        logger.info(f"Committed {count} {kind} so far")

                if batch.size:
                    await self._flush(conn, batch, tables)

        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to insert {kind}",
                context={
                    "operation": "INSERT",
                    "kind": kind,
                    "records_committed": count - batch.size,
                },
                original_exception=e
            )

        logger.info(f"Inserted {count} {kind}")
        return count

    async def batch_insert_questions(self, questions: Iterable[Question]) -> int:
        return await self._batch_insert(
            "questions", questions, self._stage_question,
            (OwnerRow, QuestionRow, Tag, Api, TagQuestion, QuestionApi)
        )

    async def batch_insert_answers(self, answers: Iterable[Answer]) -> int:
        return await self._batch_insert(
            "answers", answers, self._stage_answer,
            (OwnerRow, AnswerRow, Api, AnswerApi)
        )

    async def batch_insert_comments(self, comments: Iterable[Comment]) -> int:
        return await self._batch_insert(
            "comments", comments, self._stage_comment,
            (OwnerRow, CommentRow, Api, CommentApi)
        )

    async def record_update_time(self, when: Optional[datetime] = None) -> datetime:
        """Upsert the single last-update row"""
        when = when or datetime.now(timezone.utc)
        stmt = self._insert(LastUpdate).values(id=LastUpdate.MARKER_ID, last_update_time=when)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={"last_update_time": stmt.excluded.last_update_time}
        )

        try:
            async with self._connection() as conn:
                await conn.execute(stmt)
                await conn.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(
                "Failed to record last update time",
                context={"operation": "UPSERT", "table_name": "last_update"},
                original_exception=e
            )
        return when

    async def persist(
        self,
        questions: List[Question],
        answers: List[Answer],
        comments: List[Comment]
    ) -> Dict[str, int]:
        """
        Write a whole catalog: questions, then answers, then comments, then
        the last-update marker.

        Returns:
            Number of records written per kind
        """
        logger.info(
            f"Persisting {len(questions)} questions, {len(answers)} answers, "
            f"{len(comments)} comments"
        )

        counts = {
            "questions": await self.batch_insert_questions(questions),
            "answers": await self.batch_insert_answers(answers),
            "comments": await self.batch_insert_comments(comments),
        }
        await self.record_update_time()

        logger.info(f"Persist complete: {counts}")
        return counts
