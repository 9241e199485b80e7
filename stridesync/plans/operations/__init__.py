"""Plan operations.

Deterministic, validated edits to a stored training plan. An LLM (or the
calendar UI) expresses a change as operations; this package validates,
previews and applies them without regenerating the plan.
"""

from stridesync.plans.operations.describe import describe_operation
from stridesync.plans.operations.engine import apply_operations
from stridesync.plans.operations.preview import preview_operations
from stridesync.plans.operations.tools import OPERATION_TOOLS, ToolCall, operations_from_tool_calls
from stridesync.plans.operations.types import (
    ApplyResult,
    FallbackRequest,
    OperationPreview,
    PlanOperation,
    ValidationResult,
    parse_operations,
)
from stridesync.plans.operations.validators import validate_operations

__all__ = [
    "OPERATION_TOOLS",
    "ApplyResult",
    "FallbackRequest",
    "OperationPreview",
    "PlanOperation",
    "ToolCall",
    "ValidationResult",
    "apply_operations",
    "describe_operation",
    "operations_from_tool_calls",
    "parse_operations",
    "preview_operations",
    "validate_operations",
]
