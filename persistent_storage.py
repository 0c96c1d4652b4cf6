import json
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict
from pathlib import Path

DEFAULT_NAMESPACE = "water_prefs"


class StorageUnavailable(Exception):
    """Raised when the preference file cannot be read or written"""


@dataclass
class TimerState:
    name: str
    next_trigger_time: Optional[str]  # ISO format datetime
    repeat_interval_minutes: Optional[int]  # None for one-shot timers
    last_triggered: Optional[str] = None  # ISO format datetime
    is_active: bool = True


class PersistentStorage:
    def __init__(self, data_dir: str = "data", namespace: str = DEFAULT_NAMESPACE):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.prefs_file = self.data_dir / f"{namespace}.json"
        self.timer_state_file = self.data_dir / "timer_states.json"

    def _read_json(self, file_path: Path) -> Dict[str, Any]:
        """Read a JSON object, treating a missing file as empty"""
        try:
            with open(file_path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            raise StorageUnavailable(f"Error reading {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageUnavailable(f"Unexpected content in {file_path}")
        return data

    def _write_json(self, file_path: Path, data: Dict[str, Any]):
        """Write JSON atomically"""
        # Write to temp file first, then replace the target in one step
        temp_file = file_path.with_suffix('.tmp')
        try:
            with open(temp_file, 'w') as f:
                json.dump(data, f, indent=2)
            temp_file.replace(file_path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageUnavailable(f"Error writing {file_path}: {e}") from e

    def load_all(self) -> Dict[str, Any]:
        """Load every stored preference"""
        return self._read_json(self.prefs_file)

    def _as_int(self, key: str, value) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise StorageUnavailable(f"Stored value for '{key}' in {self.prefs_file} is not an integer: {value!r}")
        return value

    def get(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Get a single integer preference, or default if absent"""
        data = self.load_all()
        if key not in data:
            return default
        return self._as_int(key, data[key])

    def get_many(self, defaults: Dict[str, int]) -> Dict[str, int]:
        """Read several integer preferences from one snapshot of the file"""
        data = self.load_all()
        return {key: self._as_int(key, data[key]) if key in data else default
                for key, default in defaults.items()}

    def set(self, values: Dict[str, int]):
        """Write several preferences together in a single atomic replace"""
        data = self.load_all()
        data.update({key: int(value) for key, value in values.items()})
        self._write_json(self.prefs_file, data)

    def save_timer_states(self, timer_states: Dict[str, TimerState]):
        """Save timer states to file"""
        data = {name: asdict(state) for name, state in timer_states.items()}
        self._write_json(self.timer_state_file, data)

    def load_timer_states(self) -> Dict[str, TimerState]:
        """Load timer states from file"""
        data = self._read_json(self.timer_state_file)
        states = {}
        for name, state_dict in data.items():
            try:
                states[name] = TimerState(**state_dict)
            except TypeError as e:
                print(f"Error loading timer state {name}: {e}")
        return states
