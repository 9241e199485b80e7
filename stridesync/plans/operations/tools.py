"""Tool definitions for expressing plan edits through LLM tool calling.

Each plan operation is exposed as one tool whose arguments mirror the
operation's camelCase fields, so any provider with tool calling returns
schema-shaped edits instead of free text.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from stridesync.plans.operations.defaults import VALID_INTENSITIES, VALID_WORKOUT_TYPES
from stridesync.plans.operations.types import FallbackRequest, PlanOperation, parse_operations


class ToolDefinition(BaseModel):
    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema


class ToolCall(BaseModel):
    id: str = ""
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


_WORKOUT_TYPES = sorted(VALID_WORKOUT_TYPES)

_WEEK_NUMBERS = {
    "oneOf": [
        {"type": "array", "items": {"type": "number"}, "description": "Specific week numbers"},
        {"type": "string", "enum": ["all"], "description": "All weeks in the plan"},
    ],
    "description": 'Week numbers to apply the change to, or "all" for all weeks',
}

_WORKOUT_INDEX = {
    "type": "string",
    "pattern": r"^W\d+:D\d+$",
    "description": 'Workout index like "W14:D6" (Week 14, Day 6)',
}

_FACTOR = {
    "type": "number",
    "minimum": 0,
    "maximum": 3,
    "description": "Scaling factor (e.g., 0.8 for 80%, 1.2 for 120%)",
}


def _day(description: str) -> dict[str, Any]:
    return {"type": "number", "minimum": 1, "maximum": 7, "description": description}


def _object(properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


OPERATION_TOOLS: list[ToolDefinition] = [
    ToolDefinition(
        name="swap_days",
        description="Swap workouts between two days across specified weeks",
        parameters=_object(
            {
                "weekNumbers": _WEEK_NUMBERS,
                "dayA": _day("First day number (1-7 relative to week start)"),
                "dayB": _day("Second day number (1-7 relative to week start)"),
            },
            ["weekNumbers", "dayA", "dayB"],
        ),
    ),
    ToolDefinition(
        name="move_workout_type",
        description="Move the workout of a specific type to a target day across specified weeks",
        parameters=_object(
            {
                "workoutType": {
                    "type": "string",
                    "description": 'The workout type to move (e.g., "long_run", "rest", "tempo")',
                },
                "toDay": _day("Target day number (1-7 relative to week start)"),
                "weekNumbers": _WEEK_NUMBERS,
            },
            ["workoutType", "toDay", "weekNumbers"],
        ),
    ),
    ToolDefinition(
        name="reschedule_workout",
        description="Move a specific workout to a new date",
        parameters=_object(
            {
                "workoutIndex": _WORKOUT_INDEX,
                "newDate": {
                    "type": "string",
                    "pattern": r"^\d{4}-\d{2}-\d{2}$",
                    "description": "New date in YYYY-MM-DD format",
                },
            },
            ["workoutIndex", "newDate"],
        ),
    ),
    ToolDefinition(
        name="change_workout_type",
        description="Change a specific workout's type (e.g., to rest, race, tempo)",
        parameters=_object(
            {
                "workoutIndex": _WORKOUT_INDEX,
                "newType": {"type": "string", "enum": _WORKOUT_TYPES, "description": "New workout type"},
                "newDescription": {"type": "string", "description": "Optional new description for the workout"},
            },
            ["workoutIndex", "newType"],
        ),
    ),
    ToolDefinition(
        name="change_workout_distance",
        description="Change a specific workout's target distance",
        parameters=_object(
            {
                "workoutIndex": _WORKOUT_INDEX,
                "newDistanceMeters": {"type": "number", "minimum": 0, "description": "New distance in meters"},
            },
            ["workoutIndex", "newDistanceMeters"],
        ),
    ),
    ToolDefinition(
        name="scale_workout_distance",
        description="Scale a specific workout's distance by a factor",
        parameters=_object({"workoutIndex": _WORKOUT_INDEX, "factor": _FACTOR}, ["workoutIndex", "factor"]),
    ),
    ToolDefinition(
        name="change_intensity",
        description="Change a specific workout's intensity level",
        parameters=_object(
            {
                "workoutIndex": _WORKOUT_INDEX,
                "newIntensity": {
                    "type": "string",
                    "enum": sorted(VALID_INTENSITIES),
                    "description": "New intensity level",
                },
            },
            ["workoutIndex", "newIntensity"],
        ),
    ),
    ToolDefinition(
        name="remove_workout_type",
        description="Replace all workouts of one type with another type across specified weeks",
        parameters=_object(
            {
                "workoutType": {"type": "string", "description": "The workout type to remove"},
                "replacement": {
                    "type": "string",
                    "enum": _WORKOUT_TYPES,
                    "description": "The workout type to replace it with",
                },
                "weekNumbers": _WEEK_NUMBERS,
            },
            ["workoutType", "replacement", "weekNumbers"],
        ),
    ),
    ToolDefinition(
        name="scale_week_volume",
        description="Scale all workout distances in a specific week by a factor",
        parameters=_object(
            {
                "weekNumber": {"type": "number", "minimum": 1, "description": "Week number to scale"},
                "factor": _FACTOR,
            },
            ["weekNumber", "factor"],
        ),
    ),
    ToolDefinition(
        name="scale_phase_volume",
        description="Scale all workout distances in a specific phase by a factor",
        parameters=_object(
            {
                "phaseName": {
                    "type": "string",
                    "description": 'Phase name (e.g., "Base", "Build", "Peak", "Taper")',
                },
                "factor": _FACTOR,
            },
            ["phaseName", "factor"],
        ),
    ),
    ToolDefinition(
        name="request_fallback",
        description="Request full plan regeneration when the change is too complex to express with operations",
        parameters=_object(
            {"reason": {"type": "string", "description": "Explanation of why fallback is needed"}},
            ["reason"],
        ),
    ),
]

DEFAULT_FALLBACK_REASON = "Complex request requires full regeneration"


def operations_from_tool_calls(calls: list[ToolCall]) -> list[PlanOperation] | FallbackRequest:
    """Convert provider tool calls into operations.

    A request_fallback call anywhere wins over every other call.

    Raises:
        pydantic.ValidationError: If a call names an unknown tool or has bad arguments
    """
    for call in calls:
        if call.name == "request_fallback":
            reason = call.arguments.get("reason") or DEFAULT_FALLBACK_REASON
            return FallbackRequest(reason=str(reason))

    return parse_operations([{**call.arguments, "op": call.name} for call in calls])
