import asyncio
import inspect
from datetime import datetime, timedelta
from typing import Dict, Callable, Optional, Union
from dataclasses import dataclass
from time_service import time_service, TimeService
from persistent_storage import PersistentStorage, StorageUnavailable, TimerState


class AlarmRegistrationFailure(Exception):
    """Raised when a timer cannot be armed, e.g. notifications are not permitted"""


@dataclass
class Timer:
    name: str
    next_trigger_time: datetime
    repeat_interval: Optional[timedelta] = None
    last_triggered: Optional[datetime] = None
    is_active: bool = True

    @property
    def is_repeating(self) -> bool:
        return self.repeat_interval is not None


class TimerManager:
    """Alarm facility: named one-shot and fixed-period timers polled by an asyncio loop.

    Delivery is best effort. A timer fires on the first poll at or after its
    trigger time, so it may fire up to `check_interval_seconds` late, and a
    repeating timer that missed several periods fires once and then moves on
    to its next period.
    """

    def __init__(self, storage: PersistentStorage, on_fire: Optional[Callable] = None,
                 check_interval_seconds: int = 30, clock: TimeService = time_service):
        self.storage = storage
        self.on_fire = on_fire
        self.check_interval_seconds = check_interval_seconds
        self.clock = clock
        self.permission_granted = True
        self.timers: Dict[str, Timer] = {}
        self._running = False
        self._task = None

    def arm(self, name: str, fire_at: datetime, repeat_interval: Optional[timedelta] = None) -> Timer:
        """Arm a timer, replacing any existing timer with the same name"""
        if not self.permission_granted:
            raise AlarmRegistrationFailure(f"Notifications not permitted, cannot arm '{name}'")
        if repeat_interval is not None and repeat_interval <= timedelta(0):
            raise AlarmRegistrationFailure(f"Invalid repeat interval for '{name}': {repeat_interval}")

        timer = Timer(name=name, next_trigger_time=fire_at, repeat_interval=repeat_interval)
        self.timers[name] = timer
        print(f"⏰ Timer '{name}' armed. Next trigger: {fire_at}")

        self._save_timer_states()
        return timer

    def cancel(self, handle: Union[Timer, str]):
        """Cancel a timer by handle or name"""
        name = handle.name if isinstance(handle, Timer) else handle
        if name in self.timers:
            del self.timers[name]
            print(f"Timer '{name}' cancelled")
            self._save_timer_states()

    def cancel_all(self):
        """Cancel every timer"""
        self.timers.clear()
        self._save_timer_states()

    def get(self, name: str) -> Optional[Timer]:
        return self.timers.get(name)

    def load_saved_timers(self):
        """Restore timers persisted by a previous session"""
        try:
            saved_states = self.storage.load_timer_states()
        except StorageUnavailable as e:
            # The table is rebuilt when reminders are scheduled again
            print(f"⚠️ Could not restore timers, starting with none: {e}")
            return

        for name, state in saved_states.items():
            if not state.next_trigger_time:
                continue
            try:
                interval = None
                if state.repeat_interval_minutes:
                    interval = timedelta(minutes=state.repeat_interval_minutes)
                self.timers[name] = Timer(
                    name=state.name,
                    next_trigger_time=datetime.fromisoformat(state.next_trigger_time),
                    repeat_interval=interval,
                    last_triggered=datetime.fromisoformat(state.last_triggered) if state.last_triggered else None,
                    is_active=state.is_active
                )
            except (TypeError, ValueError) as e:
                print(f"Error restoring timer state for {name}: {e}")
        print(f"⏰ Restored {len(self.timers)} timer(s)")

    def _is_current(self, timer: Timer) -> bool:
        """False once the timer was cancelled or replaced under the same name"""
        return self.timers.get(timer.name) is timer

    def _advance(self, timer: Timer, now: datetime):
        """Move a fired timer to its next occurrence, or drop it if one-shot"""
        timer.last_triggered = now
        if not self._is_current(timer):
            return
        if timer.is_repeating:
            # Step from the anchor so the time of day never drifts
            while timer.next_trigger_time <= now:
                timer.next_trigger_time += timer.repeat_interval
        else:
            del self.timers[timer.name]

    def _is_due(self, timer: Timer, now: datetime) -> bool:
        return timer.is_active and now >= timer.next_trigger_time

    async def fire_due(self, now: datetime) -> int:
        """Fire every timer due at `now`; returns the number fired"""
        fired = 0
        changed = False
        for timer in list(self.timers.values()):
            if not self._is_current(timer) or not self._is_due(timer, now):
                continue
            try:
                if self.on_fire is not None:
                    result = self.on_fire(timer)
                    if inspect.isawaitable(result):
                        # Use timeout to prevent hanging on client disconnections
                        await asyncio.wait_for(result, timeout=30.0)
                self._advance(timer, now)
                fired += 1
                changed = True
                print(f"Timer '{timer.name}' triggered. Next trigger: "
                      f"{timer.next_trigger_time if timer.is_repeating else 'none (one-shot)'}")
            except asyncio.TimeoutError:
                print(f"Timer '{timer.name}' callback timed out")
                # Still advance the timer to prevent immediate re-triggering
                self._advance(timer, now)
                changed = True
            except Exception as e:
                print(f"Error in timer {timer.name}: {e}")
                # Leave the timer due so the next pass retries

        if changed:
            self._save_timer_states()
        return fired

    async def _timer_loop(self):
        """Main timer loop"""
        while self._running:
            try:
                await self.fire_due(self.clock.get_accurate_time())
            except Exception as e:
                print(f"❌ Error in timer loop: {e}")

            try:
                await asyncio.sleep(self.check_interval_seconds)
            except asyncio.CancelledError:
                print("Timer loop cancelled")
                break

    async def start(self):
        """Start the timer loop"""
        if not self._running:
            self._running = True
            self._task = asyncio.create_task(self._timer_loop())
            print("⏰ Timer manager started successfully")

    async def stop(self):
        """Stop the timer loop and save final state"""
        self._running = False
        self._save_timer_states()

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await asyncio.wait_for(self._task, timeout=2.0)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
        self._task = None

    def _save_timer_states(self):
        """Save current timer states to storage"""
        timer_states = {}
        for name, timer in self.timers.items():
            interval = None
            if timer.repeat_interval is not None:
                interval = int(timer.repeat_interval.total_seconds() // 60)
            timer_states[name] = TimerState(
                name=timer.name,
                next_trigger_time=timer.next_trigger_time.isoformat(),
                repeat_interval_minutes=interval,
                last_triggered=timer.last_triggered.isoformat() if timer.last_triggered else None,
                is_active=timer.is_active
            )
        try:
            self.storage.save_timer_states(timer_states)
        except Exception as e:
            print(f"Error saving timer states: {e}")
