"""
Input validation schemas using Pydantic v2 and contest consistency checks
Validates all command types and the time/medal/problem invariants of a contest
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .timespec import (
    AbsoluteInstant,
    InvalidTimeSpec,
    RelativeOffset,
    UnsetTime,
    is_displayable,
    parse_time_spec,
)

if TYPE_CHECKING:
    from .contest import Contest

logger = logging.getLogger(__name__)


class TimelineConfig:
    """Static configuration for contest time handling"""

    # The start time may only be delayed/resumed while it is further away than this
    STARTTIME_UPDATE_MIN_SECONDS_BEFORE = 30

    # Column length of the authoritative time strings
    TIME_STRING_MAX_LENGTH = 64

    # Applied to absolute time strings without an explicit zone
    DEFAULT_TIMEZONE = "UTC"

    FINALIZE_COMMENT_MAX_LENGTH = 10000

    # Fields that carry a (string, timestamp) pair, in resolution order after start
    TIME_FIELDS = ("activate", "start", "freeze", "end", "unfreeze", "deactivate")

    # Jury timeline milestones, in display order
    MILESTONES = ("activate", "start", "freeze", "end", "unfreeze", "finalize", "deactivate")


# ==================== VALIDATOR FUNCTIONS ====================


class ValidatedContestCmd(BaseModel):
    """Contest command model with per-type validation"""

    type: str = Field(..., min_length=1, max_length=50, description="Command type")
    contestId: Optional[int] = Field(None, ge=0, description="Contest ID")

    # Optimistic concurrency: version the client based its edit on
    version: Optional[int] = Field(None, ge=0, description="Contest version")

    # SET_TIME_SPEC
    field: Optional[str] = Field(None, description="Time field name, e.g. 'freeze'")
    spec: Optional[str] = Field(
        None,
        max_length=TimelineConfig.TIME_STRING_MAX_LENGTH,
        description="Absolute or relative time string",
    )

    # ADD_REMOVED_INTERVAL / REMOVE_REMOVED_INTERVAL
    starttime: Optional[float] = Field(None, ge=0, description="Interval start (epoch seconds)")
    endtime: Optional[float] = Field(None, ge=0, description="Interval end (epoch seconds)")

    # FINALIZE
    finalizetime: Optional[float] = Field(None, ge=0)
    finalize_comment: Optional[str] = Field(
        None, max_length=TimelineConfig.FINALIZE_COMMENT_MAX_LENGTH
    )
    override: Optional[bool] = None

    # SET_MEDALS
    medals_enabled: Optional[bool] = None
    gold_medals: Optional[int] = Field(None, ge=0, le=999)
    silver_medals: Optional[int] = Field(None, ge=0, le=999)
    bronze_medals: Optional[int] = Field(None, ge=0, le=999)
    extra_bronze_medals: Optional[int] = Field(None, ge=0, le=999)
    medal_categories: Optional[List[str]] = None

    # SET_PROBLEMS
    problems: Optional[List[Dict]] = None

    # TIMELINE_ACTION
    milestone: Optional[str] = None
    now: Optional[float] = Field(None, ge=0)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Validate command type is one of allowed types"""
        allowed_types = {
            "SET_TIME_SPEC",
            "ADD_REMOVED_INTERVAL",
            "REMOVE_REMOVED_INTERVAL",
            "DELAY_START",
            "RESUME_START",
            "FINALIZE",
            "SET_MEDALS",
            "SET_PROBLEMS",
            "TIMELINE_ACTION",
        }
        if v not in allowed_types:
            raise ValueError(f"type must be one of {allowed_types}, got {v}")
        return v

    @field_validator("field")
    @classmethod
    def validate_field(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if v not in TimelineConfig.TIME_FIELDS:
            raise ValueError(f"field must be one of {TimelineConfig.TIME_FIELDS}, got {v}")
        return v

    @field_validator("milestone")
    @classmethod
    def validate_milestone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if v not in TimelineConfig.MILESTONES:
            raise ValueError(f"milestone must be one of {TimelineConfig.MILESTONES}, got {v}")
        return v

    @field_validator("medal_categories")
    @classmethod
    def validate_medal_categories(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Strip category names and drop blanks"""
        if v is None:
            return v
        cleaned = []
        for category in v:
            if not isinstance(category, str):
                raise ValueError("medal_categories must contain strings")
            category = category.strip()
            if category and category not in cleaned:
                cleaned.append(category)
        return cleaned

    @field_validator("problems")
    @classmethod
    def validate_problems_list(cls, v: Optional[List[Dict]]) -> Optional[List[Dict]]:
        """Validate problems list format"""
        if v is None:
            return v

        for i, problem in enumerate(v):
            if not isinstance(problem, dict):
                raise ValueError(f"problem {i} must be a dict")
            if "problem_id" not in problem:
                raise ValueError(f'problem {i} missing "problem_id" field')
            if not isinstance(problem["problem_id"], int) or isinstance(problem["problem_id"], bool):
                raise ValueError(f'problem {i} "problem_id" must be an int')
            shortname = problem.get("shortname")
            if not isinstance(shortname, str) or not shortname.strip():
                raise ValueError(f'problem {i} "shortname" cannot be empty')

        return v

    @model_validator(mode="after")
    def validate_command_fields(self) -> Self:
        """Validate required fields based on command type"""
        cmd_type = self.type

        if cmd_type == "SET_TIME_SPEC":
            if self.field is None:
                raise ValueError("SET_TIME_SPEC requires field")

        elif cmd_type in {"ADD_REMOVED_INTERVAL", "REMOVE_REMOVED_INTERVAL"}:
            if self.starttime is None or self.endtime is None:
                raise ValueError(f"{cmd_type} requires starttime and endtime")
            if self.starttime >= self.endtime:
                raise ValueError(f"{cmd_type} requires starttime before endtime")

        elif cmd_type == "FINALIZE":
            if self.finalizetime is None and self.now is None:
                raise ValueError("FINALIZE requires finalizetime or now")

        elif cmd_type == "SET_MEDALS":
            if self.medals_enabled is None:
                raise ValueError("SET_MEDALS requires medals_enabled")

        elif cmd_type == "SET_PROBLEMS":
            if self.problems is None:
                raise ValueError("SET_PROBLEMS requires problems")

        elif cmd_type == "TIMELINE_ACTION":
            if self.milestone is None:
                raise ValueError("TIMELINE_ACTION requires milestone")
            if self.now is None:
                raise ValueError("TIMELINE_ACTION requires now")

        return self

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        if not isinstance(value, str):
            return str(value)[:max_length]

        # Strip whitespace
        value = value.strip()

        # Limit length
        value = value[:max_length]

        # Remove null bytes
        value = value.replace("\0", "")

        return value

    @staticmethod
    def sanitize_time_string(value: Optional[str]) -> Optional[str]:
        """Normalize a time string; blank means unset

        Not truncated: an over-long string is reported by check_time_strings()
        instead of silently changing meaning.
        """
        if value is None:
            return None
        value = value.replace("\0", "").strip()
        return value or None

    @staticmethod
    def validate_and_sanitize_cmd(cmd_dict: dict) -> ValidatedContestCmd:
        """
        Validate and sanitize command dictionary

        Returns:
            ValidatedContestCmd: Validated command object

        Raises:
            ValueError: If validation fails
        """
        try:
            return ValidatedContestCmd(**cmd_dict)
        except Exception as e:
            logger.warning(f"Command validation failed: {e}")
            raise ValueError(f"Invalid command: {str(e)}")


# ==================== CONSISTENCY CHECKS ====================


@dataclass(frozen=True)
class Violation:
    """A single invariant failure, tied to the offending field path."""

    path: str
    message: str


def check_time_strings(contest: Contest) -> List[Violation]:
    """Format checks on the authoritative time strings themselves."""
    violations: List[Violation] = []
    tz = contest.timezone

    for name in TimelineConfig.TIME_FIELDS:
        path = f"{name}time_string"
        raw = contest.get_time_string(name)
        if raw is not None and len(raw) > TimelineConfig.TIME_STRING_MAX_LENGTH:
            violations.append(
                Violation(
                    path,
                    f"Time string must be at most {TimelineConfig.TIME_STRING_MAX_LENGTH} characters",
                )
            )
            continue
        parsed = parse_time_spec(raw, tz)

        if name == "start" and not isinstance(parsed, AbsoluteInstant):
            violations.append(Violation(path, "Start time must be an absolute date/time"))
        elif name == "end" and isinstance(parsed, UnsetTime):
            violations.append(Violation(path, "End time is required"))
        elif isinstance(parsed, InvalidTimeSpec):
            violations.append(Violation(path, "Invalid time string"))
        elif name == "activate" and isinstance(parsed, RelativeOffset) and raw.strip().startswith("+"):
            violations.append(Violation(path, "Relative activate time must be negative"))
        elif not is_displayable(getattr(contest, f"{name}time"), tz):
            violations.append(Violation(path, "Time is out of range"))

    return violations


def validate_contest(contest: Contest) -> List[Violation]:
    """Re-resolve all times and collect every invariant violation.

    Nothing short-circuits: the caller gets the full list so all problems
    can be fixed in one round-trip. An empty list means the contest may be
    persisted.

    Comparisons involving an unresolved time are skipped; the unresolved
    field itself is reported by check_time_strings().
    """
    contest.resolve_all()
    violations = check_time_strings(contest)

    start = contest.get_starttime()
    nominal_start = contest.get_starttime(null_when_disabled=False)
    activate = contest.activatetime
    freeze = contest.freezetime
    end = contest.endtime
    unfreeze = contest.unfreezetime
    deactivate = contest.deactivatetime

    if end is not None and start is not None and end - start <= 0:
        violations.append(Violation("endtime_string", "Contest ends before it even starts"))

    if freeze is not None:
        after_end = end is not None and freeze - end > 0
        before_start = start is not None and freeze - start < 0
        if after_end or before_start:
            violations.append(
                Violation("freezetime_string", "Freezetime is out of start/endtime range")
            )

    if activate is not None and nominal_start is not None and activate - nominal_start > 0:
        violations.append(
            Violation("activatetime_string", "Activate time is later than starttime")
        )

    if unfreeze is not None:
        if freeze is None:
            violations.append(
                Violation(
                    "unfreezetime_string",
                    "Unfreezetime set but no freeze time. That makes no sense.",
                )
            )
        if end is not None and unfreeze - end < 0:
            violations.append(
                Violation("unfreezetime_string", "Unfreezetime must be larger than endtime.")
            )
        if deactivate is not None and deactivate - unfreeze < 0:
            violations.append(
                Violation(
                    "deactivatetime_string", "Deactivatetime must be larger than unfreezetime."
                )
            )
    elif deactivate is not None and end is not None and deactivate - end < 0:
        violations.append(
            Violation("deactivatetime_string", "Deactivatetime must be larger than endtime.")
        )

    if contest.medals_enabled:
        for field in ("gold_medals", "silver_medals", "bronze_medals"):
            if getattr(contest, field) is None:
                violations.append(
                    Violation(field, "This field is required when 'Enable medals' is set.")
                )
        if not contest.medal_categories:
            violations.append(
                Violation(
                    "medal_categories", "This field is required when 'Process medals' is set."
                )
            )

    for idx, problem in enumerate(contest.problems):
        others = [other for other in contest.problems if other is not problem]
        if problem.problem_id in {other.problem_id for other in others}:
            violations.append(
                Violation(
                    f"problems[{idx}].problem",
                    "Each problem can only be added to a contest once",
                )
            )
        if problem.shortname.lower() in {other.shortname.lower() for other in others}:
            violations.append(
                Violation(
                    f"problems[{idx}].shortname",
                    "Each shortname should be unique within a contest",
                )
            )

    if violations:
        logger.debug(f"Contest {contest.shortname!r} has {len(violations)} violation(s)")
    return violations


# ==================== EXPORT ====================

__all__ = [
    "TimelineConfig",
    "ValidatedContestCmd",
    "InputSanitizer",
    "Violation",
    "check_time_strings",
    "validate_contest",
]
