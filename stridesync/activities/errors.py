"""Error types for activity reconciliation."""


class ActivityError(Exception):
    """Base exception for activity merge and matching errors."""


class ActivityNotFoundError(ActivityError):
    """Raised when an activity does not exist or belongs to another athlete."""

    def __init__(self, activity_id: int) -> None:
        self.activity_id = activity_id
        super().__init__(f"Activity {activity_id} not found")


class WorkoutNotFoundError(ActivityError):
    """Raised when a planned workout does not exist or belongs to another athlete."""

    def __init__(self, workout_id: int) -> None:
        self.workout_id = workout_id
        super().__init__(f"Planned workout {workout_id} not found")


class MergeConflictError(ActivityError):
    """Raised when two activities cannot be merged (e.g. both carry the same platform id)."""
