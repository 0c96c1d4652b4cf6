import asyncio
from datetime import datetime, timedelta

import pytest

from timer_manager import AlarmRegistrationFailure, Timer, TimerManager

DAY = timedelta(days=1)


def at(hour, minute=0, second=0, day=15):
    return datetime(2024, 5, day, hour, minute, second)


def make_manager(storage, fired):
    def on_fire(timer):
        fired.append(timer.name)
    return TimerManager(storage, on_fire=on_fire)


def test_arm_replaces_same_name(timer_manager):
    timer_manager.arm("reminder_09", at(9), DAY)
    timer = timer_manager.arm("reminder_09", at(9, day=16), DAY)
    assert list(timer_manager.timers) == ["reminder_09"]
    assert timer_manager.get("reminder_09") is timer


def test_arm_refused_without_permission(timer_manager):
    timer_manager.permission_granted = False
    with pytest.raises(AlarmRegistrationFailure):
        timer_manager.arm("reminder_09", at(9), DAY)
    assert timer_manager.timers == {}


def test_arm_rejects_non_positive_interval(timer_manager):
    with pytest.raises(AlarmRegistrationFailure):
        timer_manager.arm("broken", at(9), timedelta(0))


def test_cancel_by_handle_or_name(timer_manager):
    timer = timer_manager.arm("a", at(9))
    timer_manager.arm("b", at(10))
    timer_manager.cancel(timer)
    timer_manager.cancel("b")
    timer_manager.cancel("unknown")
    assert timer_manager.timers == {}


def test_nothing_fires_before_due(storage):
    fired = []
    manager = make_manager(storage, fired)
    manager.arm("reminder_09", at(9), DAY)
    assert asyncio.run(manager.fire_due(at(8, 59, 59))) == 0
    assert fired == []


def test_repeating_timer_rearms_on_anchor(storage):
    fired = []
    manager = make_manager(storage, fired)
    manager.arm("reminder_09", at(9), DAY)

    # Delivered late, the next occurrence stays at 09:00
    assert asyncio.run(manager.fire_due(at(9, 7, 13))) == 1
    timer = manager.get("reminder_09")
    assert timer.next_trigger_time == at(9, day=16)
    assert timer.last_triggered == at(9, 7, 13)
    assert fired == ["reminder_09"]


def test_missed_periods_coalesce_into_one_fire(storage):
    fired = []
    manager = make_manager(storage, fired)
    manager.arm("reminder_09", at(9), DAY)
    asyncio.run(manager.fire_due(at(10, day=18)))
    assert fired == ["reminder_09"]
    assert manager.get("reminder_09").next_trigger_time == at(9, day=19)


def test_one_shot_timer_is_removed_after_firing(storage):
    fired = []
    manager = make_manager(storage, fired)
    manager.arm("delayed_notification", at(8, 0, 10))
    asyncio.run(manager.fire_due(at(8, 0, 10)))
    asyncio.run(manager.fire_due(at(8, 1)))
    assert fired == ["delayed_notification"]
    assert manager.get("delayed_notification") is None


def test_inactive_timer_does_not_fire(storage):
    fired = []
    manager = make_manager(storage, fired)
    manager.arm("reminder_09", at(9), DAY).is_active = False
    asyncio.run(manager.fire_due(at(9, 30)))
    assert fired == []


def test_async_callback_is_awaited(storage):
    fired = []

    async def on_fire(timer):
        await asyncio.sleep(0)
        fired.append(timer.name)

    manager = TimerManager(storage, on_fire=on_fire)
    manager.arm("reminder_13", at(13), DAY)
    asyncio.run(manager.fire_due(at(13)))
    assert fired == ["reminder_13"]


def test_failing_callback_leaves_timer_due(storage):
    def on_fire(timer):
        raise RuntimeError("display unavailable")

    manager = TimerManager(storage, on_fire=on_fire)
    manager.arm("reminder_13", at(13), DAY)
    assert asyncio.run(manager.fire_due(at(13, 1))) == 0
    assert manager.get("reminder_13").next_trigger_time == at(13)


def test_saved_timers_survive_new_manager(storage, timer_manager):
    timer_manager.arm("reminder_16", at(16), DAY)
    timer_manager.arm("delayed_notification", at(8, 0, 10))
    asyncio.run(timer_manager.fire_due(at(8, 0, 20)))

    restored = TimerManager(storage)
    restored.load_saved_timers()
    assert list(restored.timers) == ["reminder_16"]
    timer = restored.get("reminder_16")
    assert timer.next_trigger_time == at(16)
    assert timer.repeat_interval == DAY
    assert isinstance(timer, Timer)


def test_start_and_stop_loop(storage):
    fired = []

    class FixedClock:
        def get_accurate_time(self):
            return at(9, 0, 1)

    async def run():
        manager = TimerManager(storage, on_fire=lambda t: fired.append(t.name),
                               check_interval_seconds=3600, clock=FixedClock())
        manager.arm("reminder_09", at(9), DAY)
        await manager.start()
        await asyncio.sleep(0.05)
        await manager.stop()
        return manager

    manager = asyncio.run(run())
    assert fired == ["reminder_09"]
    assert manager.get("reminder_09").next_trigger_time == at(9, day=16)


def test_rearm_during_callback_keeps_new_one_shot(storage):
    async def on_fire(timer):
        await asyncio.sleep(0)
        manager.arm("delayed_notification", at(8, 1))

    manager = TimerManager(storage, on_fire=on_fire)
    manager.arm("delayed_notification", at(8, 0, 10))
    asyncio.run(manager.fire_due(at(8, 0, 10)))

    timer = manager.get("delayed_notification")
    assert timer is not None
    assert timer.next_trigger_time == at(8, 1)
    assert storage.load_timer_states()["delayed_notification"].next_trigger_time == at(8, 1).isoformat()


def test_rearm_during_callback_keeps_new_repeating_time(storage):
    async def on_fire(timer):
        await asyncio.sleep(0)
        manager.arm("reminder_09", at(9, day=20), DAY)

    manager = TimerManager(storage, on_fire=on_fire)
    manager.arm("reminder_09", at(9), DAY)
    asyncio.run(manager.fire_due(at(9, 0, 30)))
    assert manager.get("reminder_09").next_trigger_time == at(9, day=20)


def test_timer_cancelled_by_earlier_callback_does_not_fire(storage):
    fired = []

    def on_fire(timer):
        fired.append(timer.name)
        manager.cancel("b")

    manager = TimerManager(storage, on_fire=on_fire)
    manager.arm("a", at(8))
    manager.arm("b", at(8))
    asyncio.run(manager.fire_due(at(8, 1)))
    assert fired == ["a"]
    assert manager.timers == {}


def test_corrupt_timer_table_starts_empty(storage):
    storage.timer_state_file.write_text("{bad")
    manager = TimerManager(storage)
    manager.load_saved_timers()
    assert manager.timers == {}

    manager.arm("reminder_09", at(9), DAY)
    assert list(storage.load_timer_states()) == ["reminder_09"]
