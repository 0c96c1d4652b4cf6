#!/usr/bin/env python3
"""
Timer Status Utility - Check intake and reminder timers without stopping the app
"""

import os
from datetime import datetime
from pathlib import Path
from dotenv import load_dotenv
from intake_tracker import IntakeTracker, DEFAULT_DAILY_GOAL_ML
from persistent_storage import PersistentStorage, StorageUnavailable
from reminder_scheduler import ReminderScheduler
from timer_manager import TimerManager
from time_service import time_service


def format_duration(target: datetime, now: datetime) -> str:
    """Format duration until trigger time"""
    diff = target - now

    if diff.total_seconds() < 0:
        return "⚠️  OVERDUE"

    total_seconds = int(diff.total_seconds())
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60

    days = hours // 24
    hours = hours % 24

    if days > 0:
        return f"{days}d {hours}h {minutes}m {seconds}s"
    elif hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    elif minutes > 0:
        return f"{minutes}m {seconds}s"
    else:
        return f"{seconds}s"


def main(data_dir: str = "data", now: datetime = None,
         default_goal_ml: int = DEFAULT_DAILY_GOAL_ML) -> int:
    if not Path(data_dir).exists():
        print("❌ Data directory not found. Has the app been started?")
        return 1

    now = now or time_service.get_accurate_time()
    storage = PersistentStorage(data_dir)
    try:
        tracker = IntakeTracker(storage, default_goal_ml=default_goal_ml)
        timers = TimerManager(storage)
        timers.load_saved_timers()
    except StorageUnavailable as e:
        print(f"❌ {e}")
        return 1

    print("💧 HYDROTRACK - STATUS")
    print("=" * 40)
    print(f"📅 Local Time: {now.strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"🥤 Intake: {tracker.current_intake_ml}/{tracker.daily_goal_ml}ml "
          f"({tracker.progress() * 100:.0f}%)")

    print("\n⏰ TIMER STATES:")
    print("-" * 40)

    if not timers.timers:
        print("No timers armed.")
    for name, timer in sorted(timers.timers.items()):
        status = "🟢 ACTIVE" if timer.is_active else "🔴 INACTIVE"
        repeat = "daily" if timer.is_repeating else "once"

        print(f"📌 {name.upper()}")
        print(f"   Status: {status}")
        print(f"   Repeats: {repeat}")
        print(f"   Next Trigger: {timer.next_trigger_time.strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"   Time Until: {format_duration(timer.next_trigger_time, now)}")
        print()

    print(ReminderScheduler(timers).next_reminder_description(now).text)
    return 0

if __name__ == "__main__":
    load_dotenv()
    raise SystemExit(main(os.getenv('DATA_DIR', 'data'),
                          default_goal_ml=int(os.getenv('DAILY_GOAL_IN_ML', DEFAULT_DAILY_GOAL_ML))))
