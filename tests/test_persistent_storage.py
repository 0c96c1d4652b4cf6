import json

import pytest

from persistent_storage import PersistentStorage, StorageUnavailable, TimerState


def test_get_returns_default_when_missing(storage):
    assert storage.get("intake") is None
    assert storage.get("intake", 0) == 0


def test_set_writes_all_keys_together(storage):
    storage.set({"intake": 750, "daily_goal": 2000})
    assert storage.load_all() == {"intake": 750, "daily_goal": 2000}
    assert json.loads(storage.prefs_file.read_text()) == {"intake": 750, "daily_goal": 2000}


def test_set_merges_with_existing_keys(storage):
    storage.set({"intake": 100, "daily_goal": 2000})
    storage.set({"intake": 350})
    assert storage.get("intake") == 350
    assert storage.get("daily_goal") == 2000


def test_set_leaves_no_temp_file(storage):
    storage.set({"intake": 1})
    assert not storage.prefs_file.with_suffix(".tmp").exists()


def test_namespace_selects_file(tmp_path):
    storage = PersistentStorage(str(tmp_path), namespace="other_prefs")
    storage.set({"intake": 5})
    assert (tmp_path / "other_prefs.json").exists()


def test_corrupt_file_raises(storage):
    storage.prefs_file.write_text("{not json")
    with pytest.raises(StorageUnavailable):
        storage.get("intake")


def test_non_object_content_raises(storage):
    storage.prefs_file.write_text("[1, 2, 3]")
    with pytest.raises(StorageUnavailable):
        storage.load_all()


def test_write_failure_raises_and_keeps_previous_file(storage):
    storage.set({"intake": 250})
    storage.prefs_file.with_suffix(".tmp").mkdir()
    with pytest.raises(StorageUnavailable):
        storage.set({"intake": 500})
    assert storage.get("intake") == 250


def test_timer_states_round_trip(storage):
    states = {
        "reminder_09": TimerState("reminder_09", "2024-05-15T09:00:00", 1440),
        "delayed_notification": TimerState("delayed_notification", "2024-05-15T08:00:10", None),
    }
    storage.save_timer_states(states)
    assert storage.load_timer_states() == states


def test_malformed_timer_state_is_skipped(storage):
    storage.timer_state_file.write_text(json.dumps({
        "good": {"name": "good", "next_trigger_time": None, "repeat_interval_minutes": None},
        "bad": {"unexpected": 1},
    }))
    assert list(storage.load_timer_states()) == ["good"]


@pytest.mark.parametrize("raw", ['{"intake": null}', '{"intake": "abc"}', '{"intake": 2.5}', '{"intake": true}'])
def test_non_integer_value_raises(storage, raw):
    storage.prefs_file.write_text(raw)
    with pytest.raises(StorageUnavailable):
        storage.get("intake")
    with pytest.raises(StorageUnavailable):
        storage.get_many({"intake": 0, "daily_goal": 2500})


def test_get_many_applies_defaults_for_missing_keys(storage):
    storage.set({"intake": 400})
    assert storage.get_many({"intake": 0, "daily_goal": 2500}) == {"intake": 400, "daily_goal": 2500}
