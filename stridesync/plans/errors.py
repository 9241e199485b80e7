"""Error types for training plans."""


class PlanError(Exception):
    """Base exception for training plan errors."""

    pass


class PlanNotFoundError(PlanError):
    """Raised when a plan does not exist or belongs to another athlete."""

    def __init__(self, plan_id: int) -> None:
        self.plan_id = plan_id
        super().__init__(f"Training plan {plan_id} not found")
