"""
Stack Overflow queries built on the resilient API client.

Hides paging and has_more continuation from callers: batch fetches keep
requesting pages until the API reports nothing more.
"""

import logging
from typing import Any, Dict, List, Sequence, Type, TypeVar

from pydantic import BaseModel

from crawler.client import ApiClient
from schemas.stackoverflow import Question, Answer, Comment

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# Stack Exchange accepts at most 100 ids per vectorized request
MAX_IDS_PER_REQUEST = 100

COMMENT_TARGETS = {"question": "questions", "answer": "answers"}


class StackOverflowService:
    """
    Domain queries for questions, answers and comments of one tag.

    Args:
        client: Resilient API client
        page_size: Items requested per page (API maximum is 100)
        tagged: Tag the collected questions are restricted to
    """

    def __init__(self, client: ApiClient, page_size: int = 100, tagged: str = "java"):
        self.client = client
        self.page_size = page_size
        self.tagged = tagged

    async def get_question_stats(self) -> int:
        """Total number of questions with the tag"""
        data = await self.client.execute("questions", {"filter": "total", "tagged": self.tagged})
        return int(data.get("total", 0))

    async def get_no_answer_stats(self) -> int:
        """Number of questions with the tag that have no answers"""
        data = await self.client.execute("questions/no-answers", {"filter": "total", "tagged": self.tagged})
        return int(data.get("total", 0))

    async def get_questions(self, page: int) -> List[Question]:
        """One page of questions, most recently active first"""
        data = await self.client.execute("questions", {
            "page": page,
            "pagesize": self.page_size,
            "order": "desc",
            "sort": "activity",
            "tagged": self.tagged,
            "filter": "withbody",
        })
        return self._parse_items(data, Question)

    async def get_answers(self, question_ids: Sequence[int]) -> List[Answer]:
        """All answers of up to 100 questions"""
        if not question_ids:
            return []

        endpoint = f"questions/{self._join_ids(question_ids)}/answers"
        return await self._fetch_all(endpoint, {"filter": "withbody", "order": "desc", "sort": "activity"}, Answer)

    async def get_comments(self, post_type: str, ids: Sequence[int]) -> List[Comment]:
        """
        All comments on up to 100 posts.

        Args:
            post_type: "question" or "answer"
            ids: Ids of the commented posts
        """
        if post_type not in COMMENT_TARGETS:
            raise ValueError(f"Unknown post type: {post_type}")
        if not ids:
            return []

        endpoint = f"{COMMENT_TARGETS[post_type]}/{self._join_ids(ids)}/comments"
        return await self._fetch_all(endpoint, {"filter": "withbody", "order": "desc", "sort": "creation"}, Comment)

    async def _fetch_all(self, endpoint: str, params: Dict[str, Any], model: Type[T]) -> List[T]:
        items: List[T] = []
        page = 1

        while True:
            data = await self.client.execute(endpoint, {**params, "page": page, "pagesize": self.page_size})
            items.extend(self._parse_items(data, model))

            if not data.get("has_more", False):
                break
            page += 1

        logger.debug(f"Fetched {len(items)} {model.__name__.lower()}s from {endpoint} ({page} pages)")
        return items

    @staticmethod
    def _join_ids(ids: Sequence[int]) -> str:
        if len(ids) > MAX_IDS_PER_REQUEST:
            raise ValueError(f"At most {MAX_IDS_PER_REQUEST} ids per request, got {len(ids)}")
        return ";".join(str(i) for i in ids)

    @staticmethod
    def _parse_items(data: Dict[str, Any], model: Type[T]) -> List[T]:
        return [model.model_validate(item) for item in data.get("items") or []]
