from datetime import datetime

import pytest
from pydantic import ValidationError

from doubles_scheduler.services.change_history import MAX_HISTORY_SIZE, ScheduleChangeHistory


def _add(history: ScheduleChangeHistory, n: int):
    return history.add_change(
        "court-reassign",
        f"change {n}",
        old_value={"court_number": 1},
        new_value={"court_number": 2},
        match_id=f"m{n}",
    )


def test_add_change_stamps_id_and_timestamp():
    history = ScheduleChangeHistory()
    change = _add(history, 1)

    assert change.id.startswith("change-")
    assert isinstance(change.timestamp, datetime)
    assert change.match_id == "m1"
    assert history.get_last_change() is change


def test_newest_first():
    history = ScheduleChangeHistory()
    for n in range(3):
        _add(history, n)

    assert [c.description for c in history.get_history()] == ["change 2", "change 1", "change 0"]


def test_capped_at_max_size():
    history = ScheduleChangeHistory()
    for n in range(MAX_HISTORY_SIZE + 5):
        _add(history, n)

    changes = history.get_history()
    assert len(history) == MAX_HISTORY_SIZE
    assert changes[0].description == "change 54"
    assert changes[-1].description == "change 5"


def test_get_history_returns_copy():
    history = ScheduleChangeHistory()
    _add(history, 1)

    history.get_history().clear()
    assert len(history) == 1


def test_snapshots_are_copied():
    history = ScheduleChangeHistory()
    old_value = {"court_number": 1}
    change = history.add_change("court-reassign", "move", old_value=old_value, new_value={"court_number": 2})

    old_value["court_number"] = 4
    assert change.old_value == {"court_number": 1}


def test_undo_is_single_step():
    history = ScheduleChangeHistory()
    assert not history.can_undo()
    assert history.get_undoable_change() is None

    _add(history, 1)
    latest = _add(history, 2)

    assert history.can_undo()
    assert history.get_undoable_change() is latest

    history.clear()
    assert not history.can_undo()
    assert history.get_last_change() is None


def test_unknown_change_type_rejected():
    history = ScheduleChangeHistory()

    with pytest.raises(ValidationError):
        history.add_change("score-edit", "nope", old_value={}, new_value={})
