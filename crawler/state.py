"""
Collection lifecycle states with validated transitions.
"""

import enum

from core.exceptions import InvalidTransition


class CollectionState(str, enum.Enum):
    """
    Phase of a collection run.

    Forward states carry an order from 0 (NOT_STARTED) to 6 (COMPLETED).
    FAILED and PAUSED sit outside that sequence with negative orders.
    """
    NOT_STARTED = "not_started"
    COLLECTING_QUESTIONS = "collecting_questions"
    COLLECTING_ANSWERS = "collecting_answers"
    COLLECTING_QUESTION_COMMENTS = "collecting_question_comments"
    COLLECTING_ANSWER_COMMENTS = "collecting_answer_comments"
    SAVING_TO_DATABASE = "saving_to_database"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"

    @property
    def order(self) -> int:
        return _ORDERS[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (CollectionState.COMPLETED, CollectionState.FAILED)

    @property
    def progress_percentage(self) -> float:
        if self.order < 0:
            return 0.0
        return 100.0 * self.order / CollectionState.COMPLETED.order

    def can_transition_to(self, target: "CollectionState") -> bool:
        """
        Check whether moving from this state to *target* is allowed.

        Rules:
        1. Staying in the same state is always allowed.
        2. FAILED and PAUSED may move to any non-terminal state (retry/resume).
        3. Otherwise the target must be PAUSED, FAILED, or a later forward
           state no further than COMPLETED.
        """
        if self is target:
            return True

        if self in (CollectionState.FAILED, CollectionState.PAUSED):
            return not target.is_terminal

        return (
            target in (CollectionState.PAUSED, CollectionState.FAILED)
            or self.order < target.order <= CollectionState.COMPLETED.order
        )

    def ensure_transition(self, target: "CollectionState") -> "CollectionState":
        """Return *target* if the move is legal, raise InvalidTransition otherwise."""
        if not self.can_transition_to(target):
            raise InvalidTransition(self, target)
        return target

    def next_state(self) -> "CollectionState":
        """The forward state after this one; terminal and PAUSED states stay put."""
        if self.is_terminal or self is CollectionState.PAUSED:
            return self

        for state in CollectionState:
            if state.order == self.order + 1:
                return state
        return self

    @classmethod
    def from_string(cls, value: str) -> "CollectionState":
        """Parse a member name or value, case-insensitive. Unknown input means NOT_STARTED."""
        if not value:
            return cls.NOT_STARTED

        key = value.strip()
        try:
            return cls[key.upper()]
        except KeyError:
            pass
        try:
            return cls(key.lower())
        except ValueError:
            return cls.NOT_STARTED

    def __str__(self) -> str:
        return self.description


_ORDERS = {
    CollectionState.NOT_STARTED: 0,
    CollectionState.COLLECTING_QUESTIONS: 1,
    CollectionState.COLLECTING_ANSWERS: 2,
    CollectionState.COLLECTING_QUESTION_COMMENTS: 3,
    CollectionState.COLLECTING_ANSWER_COMMENTS: 4,
    CollectionState.SAVING_TO_DATABASE: 5,
    CollectionState.COMPLETED: 6,
    CollectionState.FAILED: -1,
    CollectionState.PAUSED: -2,
}

_DESCRIPTIONS = {
    CollectionState.NOT_STARTED: "Not Started",
    CollectionState.COLLECTING_QUESTIONS: "Collecting Questions",
    CollectionState.COLLECTING_ANSWERS: "Collecting Answers",
    CollectionState.COLLECTING_QUESTION_COMMENTS: "Collecting Question Comments",
    CollectionState.COLLECTING_ANSWER_COMMENTS: "Collecting Answer Comments",
    CollectionState.SAVING_TO_DATABASE: "Saving to Database",
    CollectionState.COMPLETED: "Completed",
    CollectionState.FAILED: "Failed",
    CollectionState.PAUSED: "Paused",
}
