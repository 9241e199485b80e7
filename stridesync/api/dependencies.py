"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Header, HTTPException, status


def get_athlete_id(x_athlete_id: str | None = Header(default=None)) -> str:
    """Athlete id of the caller, taken from the X-Athlete-Id header.

    Raises:
        HTTPException: 400 if the header is missing or blank
    """
    if not x_athlete_id or not x_athlete_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-Athlete-Id header",
        )
    return x_athlete_id.strip()
