from contest_core import Contest, TimelineConfig, jury_timeline

S = 1714557600.0
HOUR = 3600


def _contest(**kwargs) -> Contest:
    defaults = {
        "shortname": "demo",
        "activatetime_string": "-1:00",
        "starttime_string": "2024-05-01 10:00:00 UTC",
        "freezetime_string": "+4:00",
        "endtime_string": "+5:00",
        "unfreezetime_string": "+5:30",
        "deactivatetime_string": "+6:00",
    }
    defaults.update(kwargs)
    return Contest(**defaults)


def _icons(timeline):
    return {name: entry["icon"] for name, entry in timeline.items()}


def _buttons(timeline):
    return [name for name, entry in timeline.items() if entry["show_button"]]


def test_rows_follow_fixed_milestone_order_and_labels():
    timeline = jury_timeline(_contest(), S)
    assert list(timeline) == list(TimelineConfig.MILESTONES)
    assert timeline["activate"]["label"] == "Activate time"
    assert timeline["unfreeze"]["label"] == "Unfreeze time"
    assert timeline["start"]["time"] == "2024-05-01 10:00:00 (UTC)"
    assert timeline["finalize"]["time"] == ""


def test_before_activation():
    timeline = jury_timeline(_contest(), S - 2 * HOUR)
    assert all(icon is None for icon in _icons(timeline).values())
    assert _buttons(timeline) == ["activate", "start"]
    assert timeline["start"]["extra_button"] == {"type": "delay_start", "label": "delay start"}


def test_just_before_start_hides_delay_toggle():
    timeline = jury_timeline(_contest(), S - 10)
    icons = _icons(timeline)
    assert icons["activate"] == "check"
    assert icons["start"] == "ellipsis-h"
    assert "extra_button" not in timeline["start"]
    assert _buttons(timeline) == ["start"]


def test_delay_toggle_threshold_is_strict():
    at_threshold = jury_timeline(_contest(), S - TimelineConfig.STARTTIME_UPDATE_MIN_SECONDS_BEFORE)
    assert "extra_button" not in at_threshold["start"]
    beyond = jury_timeline(_contest(), S - TimelineConfig.STARTTIME_UPDATE_MIN_SECONDS_BEFORE - 1)
    assert "extra_button" in beyond["start"]


def test_running_contest_before_freeze():
    timeline = jury_timeline(_contest(), S + HOUR)
    icons = _icons(timeline)
    assert icons["start"] == "check"
    assert icons["freeze"] == "ellipsis-h"
    assert icons["end"] is None
    # End is only offered once the scoreboard is frozen
    assert _buttons(timeline) == ["freeze"]


def test_frozen_contest_offers_end():
    timeline = jury_timeline(_contest(), S + 4 * HOUR + 1)
    assert _icons(timeline)["freeze"] == "check"
    assert _icons(timeline)["end"] == "ellipsis-h"
    assert _buttons(timeline) == ["end"]


def test_ended_frozen_contest_offers_unfreeze_and_finalize():
    timeline = jury_timeline(_contest(), S + 5 * HOUR + 60)
    icons = _icons(timeline)
    assert icons["end"] == "check"
    assert icons["unfreeze"] == "ellipsis-h"
    assert icons["finalize"] is None
    assert _buttons(timeline) == ["unfreeze", "finalize"]


def test_unset_milestone_keeps_previous_check_carry():
    timeline = jury_timeline(_contest(), S + 5.75 * HOUR)
    icons = _icons(timeline)
    assert icons["unfreeze"] == "check"
    assert icons["finalize"] is None
    assert icons["deactivate"] == "ellipsis-h"
    assert _buttons(timeline) == ["finalize", "deactivate"]


def test_finalized_contest_hides_finalize_button():
    contest = _contest()
    contest.finalize(S + 5.6 * HOUR)
    timeline = jury_timeline(contest, S + 5.75 * HOUR)
    assert _icons(timeline)["finalize"] == "check"
    assert "finalize" not in _buttons(timeline)


def test_delayed_start_row():
    contest = _contest(starttime_enabled=False)
    timeline = jury_timeline(contest, S + HOUR)
    start = timeline["start"]
    assert start["icon"] == "ellipsis-h"
    assert start["class"] == "ignore"
    assert start["time"] == "2024-05-01 10:00:00 (UTC)"
    assert start["show_button"] is True
    # Start is in the past, so no toggle even though the start is delayed
    assert "extra_button" not in start
    # Nothing after a delayed start counts as reached
    assert _icons(timeline)["freeze"] is None
    assert _buttons(timeline) == ["start"]


def test_delayed_start_far_ahead_offers_resume():
    contest = _contest(starttime_enabled=False)
    timeline = jury_timeline(contest, S - 1800)
    assert timeline["start"]["extra_button"] == {"type": "resume_start", "label": "resume start"}


def test_timeline_uses_requested_timezone():
    timeline = jury_timeline(_contest(), S, tz_name="Europe/Amsterdam")
    assert timeline["start"]["time"] == "2024-05-01 12:00:00 (CEST)"


def test_out_of_range_time_is_shown_blank():
    contest = _contest(deactivatetime_string="+99999999:00")
    timeline = jury_timeline(contest, S)
    assert timeline["deactivate"]["time"] == ""
    assert timeline["deactivate"]["time_value"] == contest.deactivatetime
    assert contest.countdown_string(S - 1800) == "time to start: 0:30:00"
