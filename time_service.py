from datetime import datetime


class TimeService:
    """Local wall clock used to feed `now` into the scheduling code.

    Reminder hours are local times of day, so this returns naive local
    datetimes rather than UTC.
    """

    def get_accurate_time(self) -> datetime:
        """Get the current local time, truncated to whole seconds"""
        return datetime.now().replace(microsecond=0)

# Global time service instance
time_service = TimeService()
