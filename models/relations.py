from sqlalchemy import Column, BigInteger, Integer, Text, ForeignKey
from models.base import Base


class Tag(Base):
    __tablename__ = "tag"

    tag_name = Column(Text, primary_key=True)


class Api(Base):
    """An identifier (e.g. java.io.File) mentioned in post bodies."""
    __tablename__ = "api"

    api_name = Column(Text, primary_key=True)


class TagQuestion(Base):
    __tablename__ = "connection_tag_and_question"

    tag_name = Column(Text, ForeignKey("tag.tag_name"), primary_key=True)
    question_id = Column(BigInteger, ForeignKey("question.question_id"), primary_key=True)


class QuestionApi(Base):
    """Occurrences of an identifier in a question body."""
    __tablename__ = "connection_question_and_api"

    question_id = Column(BigInteger, ForeignKey("question.question_id"), primary_key=True)
    api_name = Column(Text, ForeignKey("api.api_name"), primary_key=True)
    count = Column(Integer, nullable=False)


class AnswerApi(Base):
    """Occurrences of an identifier in an answer body."""
    __tablename__ = "connection_answer_and_api"

    answer_id = Column(BigInteger, ForeignKey("answer.answer_id"), primary_key=True)
    api_name = Column(Text, ForeignKey("api.api_name"), primary_key=True)
    count = Column(Integer, nullable=False)


class CommentApi(Base):
    """Occurrences of an identifier in a comment body."""
    __tablename__ = "connection_comment_and_api"

    comment_id = Column(BigInteger, ForeignKey("comment.comment_id"), primary_key=True)
    api_name = Column(Text, ForeignKey("api.api_name"), primary_key=True)
    count = Column(Integer, nullable=False)
