#!/usr/bin/env python3
"""
HydroTrack Data Reset Utility

This script resets the stored water intake from the command line.
With --complete it also restores the default daily goal and clears all
armed reminder timers.
"""

import os
import sys
import argparse
from pathlib import Path
from dotenv import load_dotenv
from intake_tracker import IntakeTracker, DEFAULT_DAILY_GOAL_ML, INTAKE_KEY, DAILY_GOAL_KEY
from persistent_storage import PersistentStorage, StorageUnavailable


def reset(data_dir: str, complete: bool = False, default_goal_ml: int = DEFAULT_DAILY_GOAL_ML) -> IntakeTracker:
    """Reset intake (and optionally goal and timers); returns the updated tracker"""
    storage = PersistentStorage(data_dir)
    if complete:
        # Intake and goal change together in one write
        storage.set({INTAKE_KEY: 0, DAILY_GOAL_KEY: default_goal_ml})
        storage.save_timer_states({})
        return IntakeTracker(storage, default_goal_ml=default_goal_ml)

    tracker = IntakeTracker(storage, default_goal_ml=default_goal_ml)
    tracker.reset_water()
    return tracker


def main(argv=None):
    load_dotenv()
    parser = argparse.ArgumentParser(description='Reset HydroTrack data')
    parser.add_argument('--complete', action='store_true',
                        help='Also restore the default goal and clear reminder timers')
    parser.add_argument('--confirm', action='store_true',
                        help='Skip confirmation prompt')
    parser.add_argument('--data-dir', default=os.getenv('DATA_DIR', 'data'),
                        help='Directory holding the stored preferences')

    args = parser.parse_args(argv)
    default_goal_ml = int(os.getenv('DAILY_GOAL_IN_ML', DEFAULT_DAILY_GOAL_ML))

    # Check if data directory exists
    if not Path(args.data_dir).exists():
        print("❌ Data directory not found. No data to reset.")
        return

    # Show current stats before reset
    try:
        current = IntakeTracker(PersistentStorage(args.data_dir), default_goal_ml=default_goal_ml)
        print("📊 Current Data:")
        print(f"   Intake: {current.current_intake_ml}ml")
        print(f"   Daily goal: {current.daily_goal_ml}ml")
    except StorageUnavailable as e:
        print(f"⚠️ Error reading current data: {e}")

    # Confirm reset
    if not args.confirm:
        reset_type = "complete" if args.complete else "intake"
        confirm = input(f"\n🔄 Reset {reset_type}? (y/N): ").lower().strip()
        if confirm != 'y':
            print("Reset cancelled.")
            return

    try:
        reset(args.data_dir, complete=args.complete, default_goal_ml=default_goal_ml)
    except StorageUnavailable as e:
        print(f"❌ Error during reset: {e}")
        sys.exit(1)

    if args.complete:
        print("✅ Complete data reset successful!")
    else:
        print("✅ Intake reset successful! Daily goal preserved.")

if __name__ == "__main__":
    main()
