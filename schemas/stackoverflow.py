"""
Pydantic schemas for records returned by the Stack Exchange API
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from models.base import DELETED_ACCOUNT_ID, DELETED_DISPLAY_NAME


class Owner(BaseModel):
    """
    Shallow user object embedded in every post.

    Deleted and anonymous users come back without account_id, user_id or
    reputation; those fall back to -1 and the display name is replaced by a
    fixed placeholder so they all map onto one owner row.
    """

    account_id: int = DELETED_ACCOUNT_ID
    user_id: int = -1
    profile_image: Optional[str] = None
    link: str = ""
    user_type: str = "does_not_exist"
    display_name: str = DELETED_DISPLAY_NAME
    reputation: int = -1

    @field_validator("account_id", "user_id", "reputation", mode="before")
    @classmethod
    def default_missing_numbers(cls, v):
        return -1 if v is None else v

    @field_validator("link", "user_type", "display_name", mode="before")
    @classmethod
    def default_missing_text(cls, v, info):
        if v is None:
            return cls.model_fields[info.field_name].default
        return v

    @model_validator(mode="after")
    def mark_deleted_account(self):
        if self.account_id == DELETED_ACCOUNT_ID:
            self.display_name = DELETED_DISPLAY_NAME
        return self

    @property
    def is_deleted(self) -> bool:
        return self.account_id == DELETED_ACCOUNT_ID


class Question(BaseModel):
    """Question item as returned with filter=withbody"""

    question_id: int
    score: int = 0
    link: str = ""
    answer_count: int = 0
    view_count: int = 0
    content_license: Optional[str] = None
    title: str = ""
    last_activity_date: datetime
    last_edit_date: Optional[datetime] = None
    creation_date: datetime
    owner: Owner = Field(default_factory=Owner)
    body: str = ""
    tags: List[str] = Field(default_factory=list)

    @field_validator("owner", mode="before")
    @classmethod
    def default_owner(cls, v):
        return {} if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, v):
        """Ensure tags is a list of non-empty strings"""
        if v is None:
            return []
        return [str(t).strip() for t in v if str(t).strip()]


class Answer(BaseModel):
    answer_id: int
    question_id: int
    last_activity_date: datetime
    last_edit_date: Optional[datetime] = None
    creation_date: datetime
    score: int = 0
    is_accepted: bool = False
    content_license: Optional[str] = None
    body: str = ""
    owner: Owner = Field(default_factory=Owner)

    @field_validator("owner", mode="before")
    @classmethod
    def default_owner(cls, v):
        return {} if v is None else v


class Comment(BaseModel):
    """Comment on a question or an answer; post_id is the commented post."""

    comment_id: int
    post_id: int
    edited: bool = False
    body: str = ""
    creation_date: datetime
    score: int = 0
    content_license: Optional[str] = None
    owner: Owner = Field(default_factory=Owner)

    @field_validator("owner", mode="before")
    @classmethod
    def default_owner(cls, v):
        return {} if v is None else v
