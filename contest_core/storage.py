"""Storage boundary for contests.

The core never talks to a database; a parent application implements
ContestRepository. update_contest() is the one place where a command is
read-modify-validate-written, and it does so while holding the per-contest
lock so that two concurrent edits cannot both validate against a stale start.
"""
from __future__ import annotations

import logging
import time
import threading
from contextlib import contextmanager
from copy import deepcopy
from dataclasses import replace
from typing import Any, Callable, ContextManager, Dict, Iterator, List, Protocol

from .contest import (
    CommandOutcome,
    Contest,
    MissingRemovedIntervalData,
    RemovedInterval,
    ValidationError,
    apply_command,
    validate_contest_version,
)
from .validation import InputSanitizer

logger = logging.getLogger(__name__)


class ContestNotFound(LookupError):
    pass


class ContestRepository(Protocol):
    def load(self, contest_id: int) -> Contest:
        """Load a contest with its removed intervals and problems, resolved."""
        ...

    def save(self, contest: Contest) -> None:
        ...

    def lock(self, contest_id: int) -> ContextManager[None]:
        """Exclusive access to one contest for a read-modify-write cycle."""
        ...


class InMemoryContestRepository:
    """Dict-backed repository; contests and their removed intervals are kept apart
    the way a relational store keeps them in separate tables."""

    def __init__(self) -> None:
        self._contests: Dict[int, Contest] = {}
        self._removed_intervals: Dict[int, List[RemovedInterval]] = {}
        self._locks: Dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def load(self, contest_id: int) -> Contest:
        try:
            stored = self._contests[contest_id]
        except KeyError:
            raise ContestNotFound(f"Contest {contest_id} not found") from None
        intervals = self._removed_intervals.get(contest_id)
        if intervals is None:
            raise MissingRemovedIntervalData(
                f"Removed intervals of contest {contest_id} could not be loaded"
            )
        contest = replace(deepcopy(stored), removed_intervals=list(intervals))
        return contest

    def save(self, contest: Contest) -> None:
        if contest.cid is None:
            raise ValueError("Contest must have a cid to be saved")
        stored = deepcopy(contest)
        self._removed_intervals[contest.cid] = list(stored.removed_intervals)
        stored.removed_intervals = []
        self._contests[contest.cid] = stored

    @contextmanager
    def lock(self, contest_id: int) -> Iterator[None]:
        with self._registry_lock:
            contest_lock = self._locks.setdefault(contest_id, threading.Lock())
        with contest_lock:
            yield


def system_now() -> float:
    """Current wall-clock time in epoch seconds (sub-second precision)."""
    return time.time()


def update_contest(
    repository: ContestRepository,
    contest_id: int,
    cmd: Dict[str, Any],
    clock: Callable[[], float] = system_now,
) -> CommandOutcome | ValidationError:
    """Validate, apply and persist one command atomically per contest.

    FINALIZE and TIMELINE_ACTION commands without 'now' get it from `clock`.

    Steps (all under repository.lock(contest_id)):
        1. Validate the command payload (pydantic)
        2. Load the contest with its removed intervals
        3. Reject stale versions
        4. apply_command(): mutate a copy, re-resolve, collect violations
        5. Save only if there are no violations

    Returns:
        CommandOutcome, or ValidationError for unknown contests and stale
        versions

    Raises:
        ValueError: If the command payload is invalid
        MissingRemovedIntervalData: If the store cannot provide intervals
    """
    cmd = dict(cmd)
    if cmd.get("type") in {"FINALIZE", "TIMELINE_ACTION"} and cmd.get("now") is None:
        cmd["now"] = clock()
    validated = InputSanitizer.validate_and_sanitize_cmd(cmd)
    clean_cmd = validated.model_dump(exclude_none=True)

    with repository.lock(contest_id):
        try:
            contest = repository.load(contest_id)
        except ContestNotFound as e:
            return ValidationError(kind="not_found", message=str(e), status_code=404)

        stale = validate_contest_version(contest, clean_cmd)
        if stale is not None:
            logger.warning(f"Contest {contest_id}: {stale.message}")
            return stale

        outcome = apply_command(contest, clean_cmd)
        if outcome.persist_required:
            repository.save(outcome.contest)
            logger.info(
                f"Contest {contest_id}: {clean_cmd['type']} stored as version {outcome.contest.version}"
            )
        return outcome
