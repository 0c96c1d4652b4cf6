import pytest

from persistent_storage import PersistentStorage
from reminder_scheduler import ReminderScheduler
from timer_manager import TimerManager


@pytest.fixture
def storage(tmp_path):
    return PersistentStorage(str(tmp_path / "data"))


@pytest.fixture
def timer_manager(storage):
    return TimerManager(storage)


@pytest.fixture
def scheduler(timer_manager):
    return ReminderScheduler(timer_manager)

