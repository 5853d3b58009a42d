"""
Pydantic schemas for data validation and serialization.

Schemas:
    stackoverflow: Owner, Question, Answer and Comment records parsed from
        the Stack Exchange API ``items`` arrays
    checkpoint: QuestionProgress and CheckpointState, the persisted form of
        a collection checkpoint
    api: Reporting API response models

Features:
    - Epoch-second timestamps parsed into timezone-aware datetimes
    - Deleted/anonymous owners normalized to the -1 placeholder account
    - JSON round-tripping for the checkpoint file

Usage:
    from schemas.stackoverflow import Question
    from schemas.checkpoint import CheckpointState

Example:
    question = Question.model_validate(item)
    assert question.owner.account_id == -1  # when the author was deleted
"""

__all__ = [
    "stackoverflow",
    "checkpoint",
    "api",
]
