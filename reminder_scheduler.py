from datetime import datetime, timedelta
from typing import Dict, List, Optional
from dataclasses import dataclass
from timer_manager import TimerManager, Timer, AlarmRegistrationFailure

TARGET_HOURS = (9, 13, 16, 20)
REPEAT_INTERVAL = timedelta(days=1)
DEFAULT_DELAY = timedelta(seconds=10)
DELAYED_TIMER_NAME = "delayed_notification"
CHANNEL_ID = "water_reminder_channel"
REMINDER_TITLE = "HydroTrack Reminder"


@dataclass(frozen=True)
class ReminderNotification:
    title: str
    body: str
    channel_id: str = CHANNEL_ID


@dataclass(frozen=True)
class ReminderDescription:
    hours: int
    minutes: int
    clock_time: str  # zero-padded "HH:00"
    fire_at: datetime

    @property
    def text(self) -> str:
        if self.hours > 0:
            return f"Next water intake is in {self.hours} hours and {self.minutes} minutes on {self.clock_time}"
        return f"Next water intake is in {self.minutes} minutes on {self.clock_time}"

    def __str__(self) -> str:
        return self.text


def timer_name_for_hour(hour: int) -> str:
    return f"reminder_{hour:02d}"


def next_occurrence(now: datetime, hour: int) -> datetime:
    """Today at `hour`:00:00, or tomorrow if that instant is strictly before `now`"""
    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate < now:
        candidate += timedelta(days=1)
    return candidate


class ReminderScheduler:
    """Daily reminders at fixed hours plus an on-demand delayed reminder.

    Every method takes `now` explicitly; nothing here reads the clock. Timers
    are named after their hour, so scheduling again replaces them instead of
    adding duplicates.

    Note that `next_reminder_description` only looks at hours strictly after
    the current hour, while `schedule_recurring` still treats the current hour
    as pending until its exact :00:00 instant has passed. At 09:00:05 the
    description therefore points at 13:00 even if the 09:00 reminder has not
    been delivered yet.
    """

    def __init__(self, alarms: TimerManager, target_hours=TARGET_HOURS):
        hours = tuple(target_hours)
        if not hours or list(hours) != sorted(set(hours)) or not all(0 <= h <= 23 for h in hours):
            raise ValueError(f"Target hours must be unique, ascending and within 0-23: {hours}")
        self.alarms = alarms
        self.target_hours = hours
        self.recurring_triggers: Dict[int, Timer] = {}
        self.delayed_trigger: Optional[Timer] = None

    def schedule_recurring(self, now: datetime) -> Dict[int, Timer]:
        """Arm one daily repeating trigger per target hour"""
        previous = dict(self.recurring_triggers)
        armed: Dict[int, Timer] = {}
        try:
            for hour in self.target_hours:
                fire_at = next_occurrence(now, hour)
                armed[hour] = self.alarms.arm(timer_name_for_hour(hour), fire_at, REPEAT_INTERVAL)
        except AlarmRegistrationFailure as e:
            print(f"⚠️ Could not schedule reminders, keeping previous schedule: {e}")
            self._restore(previous, armed)
            raise

        self.recurring_triggers = armed
        print(f"⏰ Scheduled {len(armed)} daily reminders: "
              f"{', '.join(t.next_trigger_time.strftime('%Y-%m-%d %H:%M') for t in armed.values())}")
        return dict(armed)

    def _restore(self, previous: Dict[int, Timer], partially_armed: Dict[int, Timer]):
        """Put back the triggers that existed before a failed scheduling pass"""
        for hour, timer in partially_armed.items():
            prior = previous.get(hour)
            if prior is None:
                self.alarms.cancel(timer)
                continue
            try:
                self.alarms.arm(prior.name, prior.next_trigger_time, prior.repeat_interval)
            except AlarmRegistrationFailure as e:
                print(f"❌ Could not restore reminder for {hour:02d}:00: {e}")

    def schedule_one_shot(self, now: datetime, delay: timedelta = DEFAULT_DELAY) -> Timer:
        """Arm the single delayed reminder, replacing any outstanding one"""
        self.delayed_trigger = self.alarms.arm(DELAYED_TIMER_NAME, now + delay)
        return self.delayed_trigger

    def cancel_all(self):
        """Disarm every recurring trigger and the delayed trigger"""
        # Cancel by name to include timers restored from disk
        for hour in self.target_hours:
            self.alarms.cancel(timer_name_for_hour(hour))
        self.recurring_triggers = {}

        self.alarms.cancel(DELAYED_TIMER_NAME)
        self.delayed_trigger = None

    def armed_hours(self) -> List[int]:
        return [hour for hour, timer in self.recurring_triggers.items()
                if self.alarms.get(timer.name) is not None]

    def next_reminder_description(self, now: datetime) -> ReminderDescription:
        """Describe how long until the next target hour after the current one"""
        next_hour = next((hour for hour in self.target_hours if hour > now.hour), None)

        if next_hour is not None:
            fire_at = now.replace(hour=next_hour, minute=0, second=0, microsecond=0)
        else:
            fire_at = (now + timedelta(days=1)).replace(
                hour=self.target_hours[0], minute=0, second=0, microsecond=0)

        diff_minutes = int((fire_at - now).total_seconds() // 60)
        hours, minutes = divmod(diff_minutes, 60)
        return ReminderDescription(
            hours=hours,
            minutes=minutes,
            clock_time=f"{fire_at.hour:02d}:00",
            fire_at=fire_at
        )

    def fire_reminder(self) -> ReminderNotification:
        """Content shown when a scheduled reminder fires"""
        return ReminderNotification(REMINDER_TITLE, "Have a fresh glass of water twin!💧💖")

    def test_notification(self) -> ReminderNotification:
        """Content of the immediate test notification"""
        return ReminderNotification(REMINDER_TITLE, "Have a fresh cup of water twin!")
