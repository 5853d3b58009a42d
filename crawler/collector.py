# ============================================================================
# File: crawler/collector.py
# Description: Resumable collection of questions, answers and comments
# ============================================================================
"""
Data Collector - drives a catalog collection through its phases.

Phases run in a fixed order, each one announcing itself through the
checkpoint state before doing any work:

1. Collect questions, page by page
2. Collect answers for questions that still need them
3. Collect question comments
4. Collect answer comments
5. Save everything to the database

A restarted run loads the checkpoint, rebuilds its in-memory collections from
it and resumes at the phase the previous run was in. Anything already marked
complete is skipped.
"""

import logging
import math
from typing import Dict, Iterator, List, Sequence

from core.exceptions import CollectionError
from crawler.checkpoint import CollectionCheckpoint
from crawler.loaders.postgres_loader import PostgresLoader
from crawler.stackoverflow import StackOverflowService, MAX_IDS_PER_REQUEST
from crawler.state import CollectionState
from schemas.stackoverflow import Question, Answer, Comment

logger = logging.getLogger(__name__)


class DataCollector:
    """
    Collect one tag's catalog, resumably.

    Args:
        service: Domain query layer
        loader: Writer used by the save phase
        checkpoint: Loaded checkpoint; its recorded data seeds the collector
        page_size: Questions per page, used to derive the page count
        page_step: Sampling stride over pages (1 collects every page)
        chunk_size: Ids per answer/comment request, at most 100
    """

    def __init__(
        self,
        service: StackOverflowService,
        loader: PostgresLoader,
        checkpoint: CollectionCheckpoint,
        page_size: int = 100,
        page_step: int = 1,
        chunk_size: int = MAX_IDS_PER_REQUEST
    ):
        self.service = service
        self.loader = loader
        self.checkpoint = checkpoint
        self.page_size = max(1, page_size)
        self.page_step = max(1, page_step)
        self.chunk_size = max(1, min(chunk_size, MAX_IDS_PER_REQUEST))

        # Id-keyed so the first observed version of a record is kept
        self.questions: Dict[int, Question] = {q.question_id: q for q in checkpoint.questions()}
        self.answers: Dict[int, Answer] = {a.answer_id: a for a in checkpoint.answers()}
        self.comments: Dict[int, Comment] = {c.comment_id: c for c in checkpoint.comments()}

        if self.questions:
            logger.info(
                f"Restored {len(self.questions)} questions, {len(self.answers)} answers "
                f"and {len(self.comments)} comments from checkpoint"
            )

    def calculate_total_pages(self, total_questions: int) -> int:
        return math.ceil(total_questions / self.page_size) if total_questions > 0 else 0

    async def refresh(self) -> Dict[str, int]:
        """Fetch the catalog totals and store them in the checkpoint."""
        total = await self.service.get_question_stats()
        no_answer = await self.service.get_no_answer_stats()
        total_pages = self.calculate_total_pages(total)

        self.checkpoint.update_statistics(total, no_answer, total_pages)
        logger.info(
            f"Catalog has {total} questions ({no_answer} unanswered, "
            f"{self.checkpoint.no_answer_ratio:.1%}) over {total_pages} pages"
        )
        return {
            "total_questions": total,
            "no_answer_questions": no_answer,
            "total_pages": total_pages,
        }

    async def collect_data(self):
        """
        Run or resume the collection.

        A COMPLETED checkpoint returns immediately, without contacting the API.

        Raises:
            Whatever a phase raised; the checkpoint is left in FAILED
        """
        state = self.checkpoint.state
        if state is CollectionState.COMPLETED:
            logger.info("Collection already completed, nothing to do")
            return

        try:
            if state in (CollectionState.NOT_STARTED, CollectionState.FAILED, CollectionState.PAUSED):
                # Leave the resumable states first so a failure can be recorded as FAILED
                start = CollectionState.COLLECTING_QUESTIONS
                self.checkpoint.set_state(start)
            else:
                start = state
            logger.info(f"Starting collection at phase: {start.description} (was: {state.description})")

            await self.refresh()

            if self.page_step > 1:
                logger.warning(
                    f"Page step is {self.page_step}: only every {self.page_step}th page will be collected"
                )

            phases = [
                (CollectionState.COLLECTING_QUESTIONS, self._collect_questions),
                (CollectionState.COLLECTING_ANSWERS, self._collect_answers),
                (CollectionState.COLLECTING_QUESTION_COMMENTS, self._collect_question_comments),
                (CollectionState.COLLECTING_ANSWER_COMMENTS, self._collect_answer_comments),
                (CollectionState.SAVING_TO_DATABASE, self._save_to_database),
            ]
            for phase_state, phase in phases:
                if phase_state.order >= start.order:
                    await phase()

            logger.info("Collection completed")

        except Exception as e:
            current = self.checkpoint.state
            logger.error(f"Collection failed in state {current.description}: {e}")
            if current.can_transition_to(CollectionState.FAILED):
                self.checkpoint.set_state(CollectionState.FAILED)
            else:
                logger.warning(f"Checkpoint left in {current.description}, it cannot move to Failed")
            raise

    def _chunks(self, ids: Sequence[int]) -> Iterator[List[int]]:
        for start in range(0, len(ids), self.chunk_size):
            yield list(ids[start:start + self.chunk_size])

    # --------------------------------------------------
    # PHASE 1: QUESTIONS
    # --------------------------------------------------
    async def _collect_questions(self):
        self.checkpoint.set_state(CollectionState.COLLECTING_QUESTIONS)

        total_pages = self.checkpoint.total_pages
        last_page = self.checkpoint.last_processed_page
        start_page = last_page + self.page_step if last_page > 0 else 1

        for page in range(start_page, total_pages + 1, self.page_step):
            questions = await self.service.get_questions(page)

            added = 0
            for question in questions:
                if question.question_id in self.questions:
                    continue
                self.questions[question.question_id] = question
                self.checkpoint.record_question_progress(question)
                added += 1

            self.checkpoint.set_last_processed_page(page)
            logger.info(f"Page {page}/{total_pages}: {added} new questions ({len(self.questions)} total)")

    # --------------------------------------------------
    # PHASE 2: ANSWERS
    # --------------------------------------------------
    async def _collect_answers(self):
        self.checkpoint.set_state(CollectionState.COLLECTING_ANSWERS)

        pending = [qid for qid in self.questions if self.checkpoint.needs_answer_collection(qid)]
        logger.info(f"Collecting answers for {len(pending)} questions")

        for index, chunk in enumerate(self._chunks(pending)):
            self.checkpoint.update_batch(chunk, index)

            for answer in await self.service.get_answers(chunk):
                if answer.answer_id in self.answers:
                    continue
                self.answers[answer.answer_id] = answer
                self.checkpoint.record_answer_progress(answer.question_id, answer)

            self.checkpoint.mark_answers_collected(chunk)
            logger.info(f"Answer batch {index + 1}: {len(self.answers)} answers total")

        self.checkpoint.update_batch([], 0)

    # --------------------------------------------------
    # PHASE 3 and 4: COMMENTS
    # --------------------------------------------------
    async def _collect_question_comments(self):
        self.checkpoint.set_state(CollectionState.COLLECTING_QUESTION_COMMENTS)

        pending = [qid for qid in self.questions if self.checkpoint.needs_comment_collection(qid, True)]
        logger.info(f"Collecting comments for {len(pending)} questions")

        for index, chunk in enumerate(self._chunks(pending)):
            self.checkpoint.update_batch(chunk, index)
            await self._collect_comments("question", chunk)
            self.checkpoint.mark_question_comments_collected(chunk)

        self.checkpoint.update_batch([], 0)

    async def _collect_answer_comments(self):
        self.checkpoint.set_state(CollectionState.COLLECTING_ANSWER_COMMENTS)

        pending = [aid for aid in self.answers if self.checkpoint.needs_comment_collection(aid, False)]
        logger.info(f"Collecting comments for {len(pending)} answers")

        for index, chunk in enumerate(self._chunks(pending)):
            self.checkpoint.update_batch(chunk, index)
            await self._collect_comments("answer", chunk)
            self.checkpoint.mark_answer_comments_collected(chunk)

        self.checkpoint.update_batch([], 0)

    async def _collect_comments(self, post_type: str, chunk: List[int]):
        is_question = post_type == "question"
        added = 0

        for comment in await self.service.get_comments(post_type, chunk):
            if comment.comment_id in self.comments:
                continue
            self.comments[comment.comment_id] = comment
            self.checkpoint.record_comment_progress(comment.post_id, is_question, comment)
            added += 1

        logger.info(f"{added} new {post_type} comments ({len(self.comments)} total)")

    # --------------------------------------------------
    # PHASE 5: SAVE
    # --------------------------------------------------
    async def _save_to_database(self):
        self.checkpoint.set_state(CollectionState.SAVING_TO_DATABASE)

        try:
            counts = await self.loader.persist(
                list(self.questions.values()),
                list(self.answers.values()),
                list(self.comments.values())
            )
        except Exception as e:
            raise CollectionError(
                "Failed to save to database",
                context={
                    "questions": len(self.questions),
                    "answers": len(self.answers),
                    "comments": len(self.comments),
                },
                original_exception=e
            )

        self.checkpoint.set_state(CollectionState.COMPLETED)
        logger.info(f"Saved to database: {counts}")
