"""Type definitions for dict-shaped contest outputs and commands."""
from __future__ import annotations

from typing import List, Optional, TypedDict


class ContestStateDict(TypedDict):
    """
    Phase snapshot returned by Contest.get_state().

    Each value is the instant (epoch seconds) at which the phase was
    reached, or None if it has not been reached yet at the queried time.
    """
    started: Optional[float]
    ended: Optional[float]
    frozen: Optional[float]
    thawed: Optional[float]
    finalized: Optional[float]
    end_of_updates: Optional[float]


class ExtraButton(TypedDict):
    """Secondary action next to the start milestone ('delay_start' | 'resume_start')."""
    type: str
    label: str


# Functional syntax because of the "class" key ('ignore' for a delayed start).
TimelineEntry = TypedDict(
    "TimelineEntry",
    {
        "icon": Optional[str],  # 'check' | 'ellipsis-h' | None
        "label": str,  # e.g. "Freeze time"
        "time": str,  # formatted absolute time, '' when unset
        "time_value": Optional[float],
        "show_button": bool,
        "extra_button": ExtraButton,
        "class": str,
    },
    total=False,
)


class ProblemPayload(TypedDict, total=False):
    """A contest problem entry as sent in SET_PROBLEMS."""
    problem_id: int
    shortname: str


class CommandPayload(TypedDict, total=False):
    """
    TypedDict for command payloads sent to apply_command().

    Fields vary by command type.
    """
    # Common
    type: str
    contestId: int
    version: Optional[int]

    # SET_TIME_SPEC
    field: Optional[str]
    spec: Optional[str]

    # ADD_REMOVED_INTERVAL / REMOVE_REMOVED_INTERVAL
    starttime: Optional[float]
    endtime: Optional[float]

    # FINALIZE
    finalizetime: Optional[float]
    finalize_comment: Optional[str]
    override: Optional[bool]

    # SET_MEDALS
    medals_enabled: Optional[bool]
    gold_medals: Optional[int]
    silver_medals: Optional[int]
    bronze_medals: Optional[int]
    extra_bronze_medals: Optional[int]
    medal_categories: Optional[List[str]]

    # SET_PROBLEMS
    problems: Optional[List[ProblemPayload]]

    # TIMELINE_ACTION
    milestone: Optional[str]
    now: Optional[float]

