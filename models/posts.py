from sqlalchemy import Column, BigInteger, Integer, Text, Boolean, DateTime, ForeignKey, Index
from models.base import Base


class Question(Base):
    """
    A collected question.

    Rows are written with insert-or-skip, so the first stored version of a
    question wins. Foreign keys are suspended while a bulk load runs.
    """
    __tablename__ = "question"

    question_id = Column(BigInteger, primary_key=True, autoincrement=False)
    score = Column(Integer, nullable=False)
    link = Column(Text, nullable=False)
    answer_count = Column(Integer, nullable=False)
    view_count = Column(Integer, nullable=False)
    content_license = Column(Text, nullable=True)
    title = Column(Text, nullable=False)
    last_activity_date = Column(DateTime(timezone=True), nullable=False)
    last_edit_date = Column(DateTime(timezone=True), nullable=True)
    creation_date = Column(DateTime(timezone=True), nullable=False)
    account_id = Column(BigInteger, ForeignKey("owner.account_id"), nullable=False)
    body = Column(Text, nullable=False)


class Answer(Base):
    """A collected answer, linked to its question."""
    __tablename__ = "answer"

    answer_id = Column(BigInteger, primary_key=True, autoincrement=False)
    last_activity_date = Column(DateTime(timezone=True), nullable=False)
    last_edit_date = Column(DateTime(timezone=True), nullable=True)
    creation_date = Column(DateTime(timezone=True), nullable=False)
    score = Column(Integer, nullable=False)
    is_accepted = Column(Boolean, nullable=False)
    content_license = Column(Text, nullable=True)
    question_id = Column(BigInteger, ForeignKey("question.question_id"), nullable=False)
    body = Column(Text, nullable=False)
    account_id = Column(BigInteger, ForeignKey("owner.account_id"), nullable=False)

    __table_args__ = (
        Index("idx_answer_question", "question_id"),
    )


class Comment(Base):
    """
    A collected comment.

    post_id points at either a question or an answer, so it carries no
    foreign key.
    """
    __tablename__ = "comment"

    comment_id = Column(BigInteger, primary_key=True, autoincrement=False)
    edited = Column(Boolean, nullable=False)
    post_id = Column(BigInteger, nullable=False)
    body = Column(Text, nullable=False)
    creation_date = Column(DateTime(timezone=True), nullable=False)
    score = Column(Integer, nullable=False)
    content_license = Column(Text, nullable=True)
    account_id = Column(BigInteger, ForeignKey("owner.account_id"), nullable=False)

    __table_args__ = (
        Index("idx_comment_post", "post_id"),
    )
