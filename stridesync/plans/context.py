"""Plan context loading.

Builds the in-memory plan snapshot that the operations engine resolves
against and that prompt builders render for the LLM. The snapshot is loaded
fresh for every request and never cached.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, computed_field
from sqlalchemy import select
from sqlalchemy.orm import Session

from stridesync.db.models import Athlete, PlannedWorkout, TrainingPlan, WeeklyPlan
from stridesync.plans.errors import PlanNotFoundError
from stridesync.plans.workout_reference import parse_workout_index

DAY_ABBREVIATIONS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


class PlanInfo(BaseModel):
    id: int
    name: str
    plan_type: str | None = None
    start_date: date
    end_date: date
    status: str
    vdot: float | None = None
    training_paces: dict[str, Any] | None = None
    user_criteria: dict[str, Any] | None = None


class PhaseInfo(BaseModel):
    phase_name: str
    phase_order: int
    start_date: date
    end_date: date
    week_numbers: list[int] = Field(default_factory=list)


class WorkoutSnapshot(BaseModel):
    """One planned workout as seen by the operations engine.

    id and version identify the stored row; everything else is content that
    operations may rewrite on a copy of the snapshot.
    """

    id: int
    workout_index: str | None = None
    day: int
    scheduled_date: date
    workout_type: str
    description: str = ""
    distance_target_meters: int | None = None
    duration_target_seconds: int | None = None
    intensity_target: str = ""
    structured_workout: dict[str, Any] | None = None
    status: str = "scheduled"
    version: int = 1
    garmin_workout_id: str | None = None
    garmin_sync_status: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def distance_km(self) -> float | None:
        if not self.distance_target_meters:
            return None
        return self.distance_target_meters / 1000

    @property
    def pace_guidance(self) -> str | None:
        if not self.structured_workout:
            return None
        return self.structured_workout.get("pace_guidance")


class WeekSnapshot(BaseModel):
    id: int
    week_number: int
    week_start_date: date
    phase_name: str
    weekly_volume_target: float | None = None  # meters
    workouts: list[WorkoutSnapshot] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def weekly_volume_km(self) -> float:
        if not self.weekly_volume_target:
            return 0.0
        return self.weekly_volume_target / 1000

    def workout_on_day(self, day: int) -> WorkoutSnapshot | None:
        for workout in self.workouts:
            if workout.day == day:
                return workout
        return None

    def planned_distance_meters(self) -> int:
        return sum(w.distance_target_meters or 0 for w in self.workouts)


class AthleteConstraints(BaseModel):
    preferred_rest_days: list[int] = Field(default_factory=list)
    comfortable_peak_mileage: float = 80
    current_weekly_mileage: float = 30
    days_per_week: int = 5
    week_starts_on: int = 0  # 0=Sunday, 1=Monday, ...


class PlanContext(BaseModel):
    plan: PlanInfo
    phases: list[PhaseInfo] = Field(default_factory=list)
    weeks: list[WeekSnapshot] = Field(default_factory=list)
    athlete_constraints: AthleteConstraints = Field(default_factory=AthleteConstraints)

    @property
    def total_weeks(self) -> int:
        return len(self.weeks)

    def get_week(self, week_number: int) -> WeekSnapshot | None:
        for week in self.weeks:
            if week.week_number == week_number:
                return week
        return None

    def find_workout(self, workout_index: str) -> WorkoutSnapshot | None:
        """Resolve a W#:D# index, matching stored indexes first, then week/day position."""
        parsed = parse_workout_index(workout_index)
        if parsed is None:
            return None
        week_number, day = parsed
        week = self.get_week(week_number)
        if week is None:
            return None
        canonical = f"W{week_number}:D{day}"
        for workout in week.workouts:
            if workout.workout_index and workout.workout_index.upper() == canonical:
                return workout
        return week.workout_on_day(day)

    def iter_workouts(self):
        for week in self.weeks:
            yield from week.workouts


class PlanSummary(BaseModel):
    total_weeks: int
    total_workouts: int
    total_volume_km: int
    phase_breakdown: dict[str, int]


def get_day_number(workout_date: date, week_start: date) -> int:
    """Day number within the week, 1 = week start."""
    return (workout_date - week_start).days + 1


def _workout_day(workout: PlannedWorkout, week_start: date) -> int:
    if workout.workout_index:
        parsed = parse_workout_index(workout.workout_index)
        if parsed is not None:
            return parsed[1]
    return get_day_number(workout.scheduled_date, week_start)


def _to_workout_snapshot(workout: PlannedWorkout, week_start: date) -> WorkoutSnapshot:
    return WorkoutSnapshot(
        id=workout.id,
        workout_index=workout.workout_index,
        day=_workout_day(workout, week_start),
        scheduled_date=workout.scheduled_date,
        workout_type=workout.workout_type,
        description=workout.description or "",
        distance_target_meters=workout.distance_target_meters,
        duration_target_seconds=workout.duration_target_seconds,
        intensity_target=workout.intensity_target or "",
        structured_workout=workout.structured_workout,
        status=workout.status,
        version=workout.version,
        garmin_workout_id=workout.garmin_workout_id,
        garmin_sync_status=workout.garmin_sync_status,
    )


def _derive_phases(weeks: list[WeekSnapshot]) -> list[PhaseInfo]:
    phases: list[PhaseInfo] = []
    for week in weeks:
        if phases and phases[-1].phase_name == week.phase_name:
            current = phases[-1]
            current.end_date = week.week_start_date + timedelta(days=6)
            current.week_numbers.append(week.week_number)
            continue
        phases.append(
            PhaseInfo(
                phase_name=week.phase_name,
                phase_order=len(phases) + 1,
                start_date=week.week_start_date,
                end_date=week.week_start_date + timedelta(days=6),
                week_numbers=[week.week_number],
            )
        )
    return phases


def _week_for_date(weekly_plans: list[WeeklyPlan], scheduled_date: date) -> WeeklyPlan | None:
    for weekly_plan in weekly_plans:
        if weekly_plan.week_start_date <= scheduled_date < weekly_plan.week_start_date + timedelta(days=7):
            return weekly_plan
    return None


def load_plan_context(session: Session, plan_id: int, athlete_id: str) -> PlanContext:
    """Load a complete plan snapshot.

    Args:
        session: Database session
        plan_id: Plan to load
        athlete_id: Owner of the plan

    Returns:
        PlanContext with weeks sorted by number and workouts sorted by day

    Raises:
        PlanNotFoundError: If the plan does not exist or belongs to another athlete
    """
    plan = session.get(TrainingPlan, plan_id)
    if plan is None or plan.athlete_id != athlete_id:
        raise PlanNotFoundError(plan_id)

    weekly_plans = list(
        session.scalars(
            select(WeeklyPlan).where(WeeklyPlan.plan_id == plan_id).order_by(WeeklyPlan.week_number)
        ).all()
    )
    workouts = session.scalars(
        select(PlannedWorkout)
        .where(PlannedWorkout.plan_id == plan_id)
        .order_by(PlannedWorkout.scheduled_date, PlannedWorkout.id)
    ).all()

    workouts_by_week: dict[int, list[PlannedWorkout]] = {wp.id: [] for wp in weekly_plans}
    for workout in workouts:
        weekly_plan_id = workout.weekly_plan_id
        if weekly_plan_id not in workouts_by_week:
            fallback = _week_for_date(weekly_plans, workout.scheduled_date)
            if fallback is None:
                logger.warning(f"Workout {workout.id} in plan {plan_id} falls outside every week, skipping")
                continue
            weekly_plan_id = fallback.id
        workouts_by_week[weekly_plan_id].append(workout)

    weeks: list[WeekSnapshot] = []
    for weekly_plan in weekly_plans:
        snapshots = [_to_workout_snapshot(w, weekly_plan.week_start_date) for w in workouts_by_week[weekly_plan.id]]
        snapshots.sort(key=lambda w: (w.day, w.id))
        weeks.append(
            WeekSnapshot(
                id=weekly_plan.id,
                week_number=weekly_plan.week_number,
                week_start_date=weekly_plan.week_start_date,
                phase_name=weekly_plan.phase_name,
                weekly_volume_target=weekly_plan.weekly_volume_target,
                workouts=snapshots,
            )
        )

    athlete = session.get(Athlete, athlete_id)
    criteria = plan.user_criteria or {}
    constraints = AthleteConstraints(
        preferred_rest_days=criteria.get("preferred_rest_days") or [],
        comfortable_peak_mileage=criteria.get("comfortable_peak_mileage") or 80,
        current_weekly_mileage=criteria.get("current_weekly_mileage") or 30,
        days_per_week=criteria.get("days_per_week") or 5,
        week_starts_on=athlete.week_starts_on if athlete is not None else 0,
    )

    context = PlanContext(
        plan=PlanInfo(
            id=plan.id,
            name=plan.name,
            plan_type=plan.plan_type,
            start_date=plan.start_date,
            end_date=plan.end_date,
            status=plan.status,
            vdot=plan.vdot,
            training_paces=plan.training_paces,
            user_criteria=plan.user_criteria,
        ),
        phases=_derive_phases(weeks),
        weeks=weeks,
        athlete_constraints=constraints,
    )

    logger.debug(
        f"Loaded plan context: plan_id={plan_id} weeks={context.total_weeks} "
        f"workouts={sum(len(w.workouts) for w in weeks)}"
    )
    return context


def format_context_for_llm(context: PlanContext) -> str:
    """Render a plan snapshot as markdown for an LLM prompt."""
    lines: list[str] = ["# Current Training Plan", ""]

    lines.append(f"**Plan**: {context.plan.name}")
    lines.append(f"**End Date**: {context.plan.end_date.isoformat()}")
    lines.append(f"**Plan Type**: {context.plan.plan_type or 'marathon'}")
    lines.append(f"**Total Weeks**: {context.total_weeks}")
    lines.append(f"**Status**: {context.plan.status}")
    if context.plan.vdot:
        lines.append(f"**VDOT**: {context.plan.vdot}")
    lines.append("")

    lines.extend(["## Phase Structure", ""])
    for phase in context.phases:
        lines.append(
            f"- **{phase.phase_name}**: {len(phase.week_numbers)} weeks "
            f"({phase.start_date.isoformat()} to {phase.end_date.isoformat()})"
        )
    lines.append("")

    constraints = context.athlete_constraints
    lines.extend(["## Athlete Constraints", ""])
    if constraints.preferred_rest_days:
        rest_days = ", ".join(DAY_ABBREVIATIONS[d % 7] for d in constraints.preferred_rest_days)
        lines.append(f"- **Required Rest Days**: {rest_days}")
    lines.append(f"- **Comfortable Peak Mileage**: {constraints.comfortable_peak_mileage:g}km/week")
    lines.append(f"- **Training Days per Week**: {constraints.days_per_week}")
    lines.append("")

    lines.extend(["## Current Plan Structure (All Workouts)", ""])
    for week in context.weeks:
        lines.append(f"### Week {week.week_number} - {week.phase_name} ({week.weekly_volume_km:.1f}km)")
        lines.append("")
        for workout in week.workouts:
            index = workout.workout_index or f"W{week.week_number}:D{workout.day}"
            line = f"- **{index}** (Day {workout.day}): {workout.workout_type} "
            if workout.distance_km:
                line += f"{workout.distance_km:.1f}km "
            line += f"[{workout.intensity_target}]"
            if workout.description and workout.description != workout.workout_type:
                line += f" - {workout.description}"
            if workout.status != "scheduled":
                line += f" ({workout.status})"
            lines.append(line)
        lines.append("")

    return "\n".join(lines)


def get_plan_summary(context: PlanContext) -> PlanSummary:
    phase_breakdown: dict[str, int] = {}
    for week in context.weeks:
        phase_breakdown[week.phase_name] = phase_breakdown.get(week.phase_name, 0) + 1

    return PlanSummary(
        total_weeks=context.total_weeks,
        total_workouts=sum(len(week.workouts) for week in context.weeks),
        total_volume_km=round(sum(week.weekly_volume_km for week in context.weeks)),
        phase_breakdown=phase_breakdown,
    )
