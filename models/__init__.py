"""
SQLAlchemy ORM models for the crawler's relational store.

Models:
    base: Declarative Base and the deleted-owner placeholder constants
    owner: Post authors (owner)
    posts: Question, Answer and Comment rows
    relations: Tags, extracted identifiers ("api") and the join tables
    last_update: Single-row marker of the last completed run

Database Schema:
    owner, question, answer, comment, tag, api,
    connection_tag_and_question, connection_question_and_api,
    connection_answer_and_api, connection_comment_and_api, last_update

    Every table is primary-keyed so the loader can use insert-or-skip
    writes; replays never create duplicates. Foreign keys are declared but
    suspended during a bulk load, because parents and children may arrive
    in any order.

Usage:
    from models.posts import Question, Answer, Comment
    from models.relations import Tag, TagQuestion
    from models.last_update import LastUpdate
"""

__all__ = [
    "base",
    "owner",
    "posts",
    "relations",
    "last_update",
]
