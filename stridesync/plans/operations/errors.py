"""Error types for plan operations.

Validation problems (including unknown workouts and weeks) are reported
through ValidationResult, never raised. These cover the write-time failures
the engine catches and reports in ApplyResult.
"""

from stridesync.plans.errors import PlanError


class PlanOperationError(PlanError):
    """Base exception for plan operation errors."""

    pass


class StaleWriteError(PlanOperationError):
    """Raised when a workout changed since the snapshot was loaded.

    Attributes:
        workout_id: Workout whose version no longer matches
        expected_version: Version the write was conditioned on
    """

    def __init__(self, workout_id: int, expected_version: int) -> None:
        self.workout_id = workout_id
        self.expected_version = expected_version
        super().__init__(
            f"Workout {workout_id} was modified concurrently (expected version {expected_version}); reload the plan"
        )


class PersistenceError(PlanOperationError):
    """Raised when a workout write fails (partial success allowed)."""

    pass
