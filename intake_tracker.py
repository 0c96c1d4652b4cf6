from dataclasses import dataclass
from persistent_storage import PersistentStorage

INTAKE_KEY = "intake"
DAILY_GOAL_KEY = "daily_goal"
DEFAULT_DAILY_GOAL_ML = 2500


class InvalidGoal(ValueError):
    """Raised when a daily goal is not a positive number of millilitres"""


class InvalidAmount(ValueError):
    """Raised when an intake amount is not a positive number of millilitres"""


@dataclass(frozen=True)
class IntakeState:
    current_intake_ml: int
    daily_goal_ml: int


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class IntakeTracker:
    """Running water intake total and daily goal, written through to storage on every change.

    The new values are written first and only then applied in memory, so a
    failed write (StorageUnavailable) leaves the tracker exactly as it was.
    """

    def __init__(self, storage: PersistentStorage, default_goal_ml: int = DEFAULT_DAILY_GOAL_ML):
        if not _is_positive_int(default_goal_ml):
            raise InvalidGoal(f"Default goal must be a positive integer, got {default_goal_ml!r}")
        self.storage = storage
        self.default_goal_ml = default_goal_ml
        self.current_intake_ml = 0
        self.daily_goal_ml = default_goal_ml
        self.reload()

    def reload(self):
        """Load intake and goal from storage, applying defaults where absent"""
        values = self.storage.get_many({INTAKE_KEY: 0, DAILY_GOAL_KEY: self.default_goal_ml})
        intake = values[INTAKE_KEY]
        goal = values[DAILY_GOAL_KEY]

        if goal <= 0:
            print(f"⚠️ Stored daily goal {goal}ml is invalid, using default {self.default_goal_ml}ml")
            goal = self.default_goal_ml

        self.current_intake_ml = max(0, intake)
        self.daily_goal_ml = goal

    @property
    def state(self) -> IntakeState:
        return IntakeState(self.current_intake_ml, self.daily_goal_ml)

    def _save(self, intake: int, goal: int):
        self.storage.set({INTAKE_KEY: intake, DAILY_GOAL_KEY: goal})
        self.current_intake_ml = intake
        self.daily_goal_ml = goal

    def add_water(self, amount_ml: int):
        """Add a drink to the running total (no upper bound)"""
        if not _is_positive_int(amount_ml):
            raise InvalidAmount(f"Amount must be a positive integer, got {amount_ml!r}")
        self._save(self.current_intake_ml + amount_ml, self.daily_goal_ml)
        print(f"💧 Added {amount_ml}ml, total {self.current_intake_ml}/{self.daily_goal_ml}ml")

    def reset_water(self):
        self._save(0, self.daily_goal_ml)
        print("🔄 Intake reset to 0ml")

    def update_goal(self, new_goal_ml: int):
        """Set a new daily goal; non-positive values raise InvalidGoal and keep the old goal"""
        if not _is_positive_int(new_goal_ml):
            raise InvalidGoal(f"Daily goal must be a positive integer, got {new_goal_ml!r}")
        self._save(self.current_intake_ml, new_goal_ml)
        print(f"🎯 Daily goal set to {new_goal_ml}ml")

    def progress(self) -> float:
        """Fraction of the daily goal reached, clamped to [0.0, 1.0]"""
        if self.daily_goal_ml == 0:
            return 0.0
        return min(1.0, max(0.0, self.current_intake_ml / self.daily_goal_ml))
