"""
Pydantic schemas for the persisted collection checkpoint.

The whole document is serialized to a single JSON file. Besides the
progress counters it keeps every fetched record, so a restarted run can
rebuild its in-memory collections without re-walking the API.
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Set
from datetime import datetime, timezone
from crawler.state import CollectionState
from schemas.stackoverflow import Question, Answer, Comment


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuestionProgress(BaseModel):
    """
    Collection progress of one question and everything attached to it.

    Completion flags only ever flip from False to True.
    """

    question: Question
    answers: Dict[int, Answer] = Field(default_factory=dict)
    question_comments: Dict[int, Comment] = Field(default_factory=dict)
    answer_comments: Dict[int, Dict[int, Comment]] = Field(default_factory=dict)

    answers_collected: bool = False
    question_comments_collected: bool = False
    answer_comments_collected: Set[int] = Field(default_factory=set)

    @property
    def question_id(self) -> int:
        return self.question.question_id

    def add_answer(self, answer: Answer):
        self.answers.setdefault(answer.answer_id, answer)

    def add_question_comment(self, comment: Comment):
        self.question_comments.setdefault(comment.comment_id, comment)

    def add_answer_comment(self, answer_id: int, comment: Comment):
        self.answer_comments.setdefault(answer_id, {}).setdefault(comment.comment_id, comment)

    def has_answer(self, answer_id: int) -> bool:
        return answer_id in self.answers

    def has_collected_answers(self) -> bool:
        # Either the batch holding this question was fetched to the end, or
        # every answer the question advertised has been recorded.
        return self.answers_collected or len(self.answers) >= self.question.answer_count

    def has_collected_question_comments(self) -> bool:
        return self.question_comments_collected

    def has_collected_answer_comments(self, answer_id: int) -> bool:
        return answer_id in self.answers and answer_id in self.answer_comments_collected

    def is_complete(self) -> bool:
        return (
            self.has_collected_answers()
            and self.has_collected_question_comments()
            and all(self.has_collected_answer_comments(answer_id) for answer_id in self.answers)
        )


class CheckpointState(BaseModel):
    """Serialized form of a collection checkpoint"""

    # Overall progress
    total_questions: int = 0
    no_answer_questions: int = 0
    total_pages: int = 0
    last_processed_page: int = 0

    # Detailed progress
    question_progress: Dict[int, QuestionProgress] = Field(default_factory=dict)
    completed_question_ids: Set[int] = Field(default_factory=set)
    completed_answer_ids: Set[int] = Field(default_factory=set)
    completed_comment_ids: Set[int] = Field(default_factory=set)

    # Active batch cursor
    current_batch_ids: List[int] = Field(default_factory=list)
    current_batch_index: int = 0

    state: CollectionState = CollectionState.NOT_STARTED
    last_update_time: datetime = Field(default_factory=_utcnow)
