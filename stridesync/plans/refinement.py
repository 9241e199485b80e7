"""Chat-driven plan refinement request.

One athlete message moves through a fixed set of states:

    received → context_loaded → operations_generated → validated → previewed → applied → done
                              ↘ fallback_requested (terminal, nothing written)
                                                     ↘ validation_failed (terminal, nothing written)

The LLM is a black box: generate(prompt, tools) returns either tool calls or
raw JSON text. There is no implicit retry; a failed apply has to be
resubmitted as a new request against a freshly loaded snapshot.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from enum import Enum

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.orm import Session

from stridesync.plans.context import PlanContext, format_context_for_llm, load_plan_context
from stridesync.plans.errors import PlanError
from stridesync.plans.operations.engine import apply_operations
from stridesync.plans.operations.preview import preview_operations
from stridesync.plans.operations.tools import OPERATION_TOOLS, ToolCall, ToolDefinition, operations_from_tool_calls
from stridesync.plans.operations.types import (
    ApplyResult,
    FallbackRequest,
    OperationPreview,
    PlanOperation,
    ValidationResult,
    find_fallback,
    parse_operations,
)
from stridesync.plans.operations.validators import validate_operations
from stridesync.plans.workout_reference import parse_workout_references

GenerateFn = Callable[[str, list[ToolDefinition]], "str | list[ToolCall]"]


class RefinementState(str, Enum):
    RECEIVED = "received"
    CONTEXT_LOADED = "context_loaded"
    OPERATIONS_GENERATED = "operations_generated"
    FALLBACK_REQUESTED = "fallback_requested"
    VALIDATED = "validated"
    VALIDATION_FAILED = "validation_failed"
    PREVIEWED = "previewed"
    APPLIED = "applied"
    APPLY_FAILED = "apply_failed"
    DONE = "done"


_TRANSITIONS: dict[RefinementState, set[RefinementState]] = {
    RefinementState.RECEIVED: {RefinementState.CONTEXT_LOADED},
    RefinementState.CONTEXT_LOADED: {RefinementState.OPERATIONS_GENERATED, RefinementState.FALLBACK_REQUESTED},
    RefinementState.OPERATIONS_GENERATED: {RefinementState.VALIDATED, RefinementState.VALIDATION_FAILED},
    RefinementState.VALIDATED: {RefinementState.PREVIEWED},
    RefinementState.PREVIEWED: {RefinementState.APPLIED, RefinementState.APPLY_FAILED},
    RefinementState.APPLIED: {RefinementState.DONE},
}

TERMINAL_STATES = frozenset(
    {
        RefinementState.FALLBACK_REQUESTED,
        RefinementState.VALIDATION_FAILED,
        RefinementState.APPLY_FAILED,
        RefinementState.DONE,
    }
)


class RefinementStateError(PlanError):
    """Raised when a refinement step is run out of order."""

    def __init__(self, current: RefinementState, requested: RefinementState) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move refinement from {current.value} to {requested.value}")


OPERATIONS_INSTRUCTIONS = """## Instructions

Express the athlete's request as plan operations by calling the provided tools.
- Refer to workouts by their index (W<week>:D<day>) exactly as listed above.
- Days are numbered 1-7 relative to the start of each week.
- Prefer the smallest set of operations that does what was asked.
- If the request cannot be expressed with these operations, call request_fallback with a short reason.
"""


def build_operations_prompt(context: PlanContext, message: str) -> str:
    """Prompt asking the LLM to turn an athlete message into operation tool calls."""
    parts = [format_context_for_llm(context), OPERATIONS_INSTRUCTIONS]

    references = parse_workout_references(message)
    if references:
        parts.append("## Referenced Workouts\n\n" + ", ".join(r.index for r in references) + "\n")

    parts.append(f"## Athlete Request\n\n{message}\n")
    return "\n".join(parts)


def _operations_from_text(text: str) -> list[PlanOperation] | FallbackRequest:
    parsed = parse_operations(json.loads(text))
    if isinstance(parsed, FallbackRequest):
        return parsed
    fallback = find_fallback(parsed)
    if fallback is not None:
        return FallbackRequest(reason=fallback.reason)
    return parsed


class PlanRefinementRequest:
    """State machine for a single plan-modification request.

    Attributes:
        state: Current state
        history: Every state visited, in order
        errors: Validation or apply errors, when the request ended in a failure state
    """

    def __init__(
        self,
        session: Session,
        plan_id: int,
        athlete_id: str,
        message: str,
        generate: GenerateFn,
    ) -> None:
        self.session = session
        self.plan_id = plan_id
        self.athlete_id = athlete_id
        self.message = message
        self.generate = generate

        self.state = RefinementState.RECEIVED
        self.history: list[RefinementState] = [self.state]
        self.context: PlanContext | None = None
        self.operations: list[PlanOperation] = []
        self.fallback_reason: str | None = None
        self.validation: ValidationResult | None = None
        self.previews: list[OperationPreview] = []
        self.apply_result: ApplyResult | None = None
        self.errors: list[str] = []

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def _transition(self, target: RefinementState) -> None:
        if target not in _TRANSITIONS.get(self.state, set()):
            raise RefinementStateError(self.state, target)
        logger.debug(f"Plan {self.plan_id} refinement: {self.state.value} → {target.value}")
        self.state = target
        self.history.append(target)

    def load_context(self) -> PlanContext:
        if self.state != RefinementState.RECEIVED:
            raise RefinementStateError(self.state, RefinementState.CONTEXT_LOADED)
        context = load_plan_context(self.session, self.plan_id, self.athlete_id)
        self.context = context
        self._transition(RefinementState.CONTEXT_LOADED)
        return context

    def generate_operations(self) -> None:
        if self.context is None or self.state != RefinementState.CONTEXT_LOADED:
            raise RefinementStateError(self.state, RefinementState.OPERATIONS_GENERATED)

        prompt = build_operations_prompt(self.context, self.message)
        response = self.generate(prompt, OPERATION_TOOLS)

        try:
            if isinstance(response, str):
                parsed = _operations_from_text(response)
            else:
                parsed = operations_from_tool_calls(response)
        except (ValueError, ValidationError) as e:
            # Malformed output is treated like an invalid batch: reported, never applied
            logger.warning(f"Plan {self.plan_id}: could not parse generated operations: {e}")
            self._transition(RefinementState.OPERATIONS_GENERATED)
            self.errors = [f"Could not parse generated operations: {e}"]
            self.validation = ValidationResult(valid=False, errors=list(self.errors))
            self._transition(RefinementState.VALIDATION_FAILED)
            return

        if isinstance(parsed, FallbackRequest):
            self.fallback_reason = parsed.reason
            self._transition(RefinementState.FALLBACK_REQUESTED)
            logger.info(f"Plan {self.plan_id}: fallback requested ({parsed.reason})")
            return

        self.operations = parsed
        self._transition(RefinementState.OPERATIONS_GENERATED)

    def validate(self) -> ValidationResult:
        if self.context is None or self.state != RefinementState.OPERATIONS_GENERATED:
            raise RefinementStateError(self.state, RefinementState.VALIDATED)

        if not self.operations:
            validation = ValidationResult(valid=False, errors=["No operations received"])
        else:
            validation = validate_operations(self.operations, self.context)
        self.validation = validation

        if validation.valid:
            self._transition(RefinementState.VALIDATED)
        else:
            self.errors = list(validation.errors)
            self._transition(RefinementState.VALIDATION_FAILED)
        return validation

    def preview(self) -> list[OperationPreview]:
        if self.context is None or self.state != RefinementState.VALIDATED:
            raise RefinementStateError(self.state, RefinementState.PREVIEWED)
        self.previews = preview_operations(self.operations, self.context)
        self._transition(RefinementState.PREVIEWED)
        return self.previews

    def prepare(self) -> RefinementState:
        """Run every step up to the preview, stopping early at a terminal state."""
        self.load_context()
        self.generate_operations()
        if self.is_terminal:
            return self.state
        self.validate()
        if self.is_terminal:
            return self.state
        self.preview()
        return self.state

    def confirm(self) -> ApplyResult:
        """Apply the previewed operations (the athlete confirmed). Caller commits."""
        if self.context is None or self.state != RefinementState.PREVIEWED:
            raise RefinementStateError(self.state, RefinementState.APPLIED)

        result = apply_operations(self.session, self.plan_id, self.operations, self.context)
        self.apply_result = result

        if not result.success:
            self.errors = list(result.errors)
            self._transition(RefinementState.APPLY_FAILED)
            return result

        self._transition(RefinementState.APPLIED)
        self._transition(RefinementState.DONE)
        return result
