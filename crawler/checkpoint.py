"""
Durable, crash-safe record of collection progress.

The checkpoint is the single source of truth for what has already been
collected. It lives in one JSON file that is replaced atomically: the new
document is written to ``<path>.tmp`` and renamed over the target, so a
reader sees either the previous checkpoint or the new one, never a partial
file.

Load and save never raise. A missing or unreadable file starts a fresh
checkpoint; a failed save is logged and the run continues from memory.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from core.exceptions import CheckpointError
from crawler.state import CollectionState
from schemas.checkpoint import CheckpointState, QuestionProgress
from schemas.stackoverflow import Question, Answer, Comment

logger = logging.getLogger(__name__)

DEFAULT_SAVE_INTERVAL = 100


class CollectionCheckpoint:
    """
    Progress of one catalog collection, persisted as JSON.

    Saves happen on every state change, page advance, statistics update and
    batch update, and after every ``save_interval`` newly completed ids of a
    kind. Up to ``save_interval`` items may therefore be fetched again after
    a crash; the collector's dedup absorbs them.
    """

    def __init__(
        self,
        path: Union[str, Path],
        data: Optional[CheckpointState] = None,
        save_interval: int = DEFAULT_SAVE_INTERVAL
    ):
        self.path = Path(path)
        self.data = data or CheckpointState()
        self.save_interval = max(1, save_interval)

        # answer_id -> question_id, rebuilt from the recorded answers
        self._answer_index: Dict[int, int] = {
            answer_id: question_id
            for question_id, progress in self.data.question_progress.items()
            for answer_id in progress.answers
        }

    @classmethod
    def load(cls, path: Union[str, Path], save_interval: int = DEFAULT_SAVE_INTERVAL) -> "CollectionCheckpoint":
        """Read the checkpoint at *path*, or start fresh if it is absent or corrupt."""
        path = Path(path)
        if not path.exists():
            logger.info(f"No checkpoint at {path}, starting fresh")
            return cls(path, save_interval=save_interval)

        try:
            data = CheckpointState.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            error = CheckpointError(
                "Failed to load progress, starting fresh",
                context={"path": str(path), "operation": "load"},
                original_exception=e
            )
            logger.error(error.message, extra={"error_context": error.to_dict()})
            return cls(path, save_interval=save_interval)

        logger.info(
            f"Loaded progress from {data.last_update_time.isoformat()} "
            f"(state: {data.state.description}, questions: {len(data.question_progress)})"
        )
        return cls(path, data, save_interval=save_interval)

    def save(self) -> bool:
        """
        Write the checkpoint atomically.

        Returns:
            True if the checkpoint reached disk, False if the failure was logged
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            if self.path.parent and not self.path.parent.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)

            tmp_path.write_text(self.data.model_dump_json(), encoding="utf-8")
            self._replace(tmp_path)
            return True

        except (OSError, ValueError) as e:
            error = CheckpointError(
                "Failed to save progress",
                context={"path": str(self.path), "operation": "save"},
                original_exception=e
            )
            logger.error(error.message, extra={"error_context": error.to_dict()})
            return False

    def _replace(self, tmp_path: Path):
        try:
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(f"Atomic replace of {self.path} failed ({e}), falling back to delete-then-rename")
            if self.path.exists():
                self.path.unlink()
            os.rename(tmp_path, self.path)

    def _touch(self):
        self.data.last_update_time = datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Overall progress
    # ------------------------------------------------------------------

    @property
    def state(self) -> CollectionState:
        return self.data.state

    def set_state(self, target: CollectionState):
        """Move to *target*; raises InvalidTransition if the state machine forbids it."""
        self.data.state = self.data.state.ensure_transition(target)
        self._touch()
        self.save()

    @property
    def total_questions(self) -> int:
        return self.data.total_questions

    @property
    def no_answer_questions(self) -> int:
        return self.data.no_answer_questions

    @property
    def total_pages(self) -> int:
        return self.data.total_pages

    @property
    def no_answer_ratio(self) -> float:
        if not self.data.total_questions:
            return 0.0
        return self.data.no_answer_questions / self.data.total_questions

    def update_statistics(self, total_questions: int, no_answer_questions: int, total_pages: int):
        self.data.total_questions = total_questions
        self.data.no_answer_questions = no_answer_questions
        self.data.total_pages = total_pages
        self._touch()
        self.save()

    @property
    def last_processed_page(self) -> int:
        return self.data.last_processed_page

    def set_last_processed_page(self, page: int):
        self.data.last_processed_page = page
        self._touch()
        self.save()

    @property
    def current_batch_ids(self) -> List[int]:
        return self.data.current_batch_ids

    @property
    def current_batch_index(self) -> int:
        return self.data.current_batch_index

    def update_batch(self, batch_ids: Iterable[int], batch_index: int):
        """Record the chunk being fetched and its position in the phase."""
        self.data.current_batch_ids = list(batch_ids)
        self.data.current_batch_index = batch_index
        self._touch()
        self.save()

    # ------------------------------------------------------------------
    # Per-record progress
    # ------------------------------------------------------------------

    def _save_periodically(self, completed: set, added: bool):
        if added and len(completed) % self.save_interval == 0:
            self.save()

    def record_question_progress(self, question: Question):
        question_id = question.question_id
        if question_id not in self.data.question_progress:
            self.data.question_progress[question_id] = QuestionProgress(question=question)

        added = question_id not in self.data.completed_question_ids
        self.data.completed_question_ids.add(question_id)
        self._touch()
        self._save_periodically(self.data.completed_question_ids, added)

    def record_answer_progress(self, question_id: int, answer: Answer):
        progress = self.data.question_progress.get(question_id)
        if progress is None:
            logger.debug(f"Answer {answer.answer_id} belongs to unknown question {question_id}")
            return

        progress.add_answer(answer)
        self._answer_index[answer.answer_id] = question_id

        added = answer.answer_id not in self.data.completed_answer_ids
        self.data.completed_answer_ids.add(answer.answer_id)
        self._touch()
        self._save_periodically(self.data.completed_answer_ids, added)

    def record_comment_progress(self, target_id: int, is_question: bool, comment: Comment):
        """
        Attach *comment* to the question it was made on, or to the question
        owning the answer it was made on.
        """
        if is_question:
            progress = self.data.question_progress.get(target_id)
            if progress is not None:
                progress.add_question_comment(comment)
        else:
            progress = self.data.question_progress.get(self._answer_index.get(target_id))
            if progress is not None and progress.has_answer(target_id):
                progress.add_answer_comment(target_id, comment)

        if progress is None:
            logger.debug(f"Comment {comment.comment_id} targets unknown post {target_id}")

        added = comment.comment_id not in self.data.completed_comment_ids
        self.data.completed_comment_ids.add(comment.comment_id)
        self._touch()
        self._save_periodically(self.data.completed_comment_ids, added)

    def mark_answers_collected(self, question_ids: Iterable[int]):
        """Every answer of these questions has been fetched."""
        for question_id in question_ids:
            progress = self.data.question_progress.get(question_id)
            if progress is not None:
                progress.answers_collected = True
        self._touch()
        self.save()

    def mark_question_comments_collected(self, question_ids: Iterable[int]):
        for question_id in question_ids:
            progress = self.data.question_progress.get(question_id)
            if progress is not None:
                progress.question_comments_collected = True
        self._touch()
        self.save()

    def mark_answer_comments_collected(self, answer_ids: Iterable[int]):
        for answer_id in answer_ids:
            progress = self.data.question_progress.get(self._answer_index.get(answer_id))
            if progress is not None:
                progress.answer_comments_collected.add(answer_id)
        self._touch()
        self.save()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def incomplete_question_ids(self) -> List[int]:
        return [
            question_id
            for question_id, progress in self.data.question_progress.items()
            if not progress.is_complete()
        ]

    def is_question_complete(self, question_id: int) -> bool:
        progress = self.data.question_progress.get(question_id)
        return progress is not None and progress.is_complete()

    def needs_answer_collection(self, question_id: int) -> bool:
        progress = self.data.question_progress.get(question_id)
        return progress is not None and not progress.has_collected_answers()

    def needs_comment_collection(self, target_id: int, is_question: bool) -> bool:
        if is_question:
            progress = self.data.question_progress.get(target_id)
            return progress is not None and not progress.has_collected_question_comments()

        progress = self.data.question_progress.get(self._answer_index.get(target_id))
        return (
            progress is not None
            and progress.has_answer(target_id)
            and not progress.has_collected_answer_comments(target_id)
        )

    def owning_question_id(self, answer_id: int) -> Optional[int]:
        return self._answer_index.get(answer_id)

    # ------------------------------------------------------------------
    # Recorded records, used to rebuild the collector after a restart
    # ------------------------------------------------------------------

    def questions(self) -> List[Question]:
        return [progress.question for progress in self.data.question_progress.values()]

    def answers(self) -> List[Answer]:
        return [
            answer
            for progress in self.data.question_progress.values()
            for answer in progress.answers.values()
        ]

    def comments(self) -> List[Comment]:
        comments: List[Comment] = []
        for progress in self.data.question_progress.values():
            comments.extend(progress.question_comments.values())
            for answer_comments in progress.answer_comments.values():
                comments.extend(answer_comments.values())
        return comments
