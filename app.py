import os
from datetime import timedelta
from dotenv import load_dotenv
from nicegui import ui, app
from intake_tracker import IntakeTracker, InvalidGoal, InvalidAmount
from persistent_storage import PersistentStorage, StorageUnavailable
from reminder_scheduler import ReminderScheduler, ReminderNotification
from timer_manager import TimerManager, AlarmRegistrationFailure
from time_service import time_service

# Load environment variables
load_dotenv()


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class HydroTrackApp:
    def __init__(self):
        # Configuration from .env
        self.data_dir = os.getenv('DATA_DIR', 'data')
        self.daily_goal_ml = int(os.getenv('DAILY_GOAL_IN_ML', 2500))
        self.min_goal_input_ml = int(os.getenv('MIN_GOAL_INPUT_ML', 1000))
        self.delayed_notification_seconds = int(os.getenv('DELAYED_NOTIFICATION_SECONDS', 10))
        self.timer_check_seconds = int(os.getenv('TIMER_CHECK_SECONDS', 30))
        self.notifications_enabled = env_flag('NOTIFICATIONS_ENABLED', True)

        self.storage = PersistentStorage(self.data_dir)
        try:
            self.tracker = IntakeTracker(self.storage, default_goal_ml=self.daily_goal_ml)
        except StorageUnavailable as e:
            print(f"❌ Cannot load intake data, fix or remove {self.storage.prefs_file}: {e}")
            raise SystemExit(1)

        self.timer_manager = TimerManager(
            self.storage,
            on_fire=self._reminder_callback,
            check_interval_seconds=self.timer_check_seconds
        )
        self.timer_manager.permission_granted = self.notifications_enabled
        self.scheduler = ReminderScheduler(self.timer_manager)

        print(f"💧 Loaded intake: {self.tracker.current_intake_ml}/{self.tracker.daily_goal_ml}ml")

        # Reactive UI data - these will automatically update the UI when changed
        self.ui_data = {
            'intake_display': '',
            'goal_display': '',
            'progress': 0.0,
            'next_reminder': ''
        }

    async def initialize_app(self):
        """Restore timers and arm the daily reminders if notifications are allowed"""
        print("🚀 Starting app initialization...")
        self.timer_manager.load_saved_timers()
        if self.notifications_enabled:
            self._schedule_reminders()
        else:
            self.timer_manager.cancel_all()
            print("🔕 Notifications disabled, daily reminders not scheduled")
        self._update_ui_data()
        print("✅ App initialization complete")

    def _schedule_reminders(self) -> bool:
        try:
            self.scheduler.schedule_recurring(time_service.get_accurate_time())
            return True
        except AlarmRegistrationFailure as e:
            print(f"⚠️ Reminders not scheduled: {e}")
            return False

    def _update_ui_data(self):
        """Refresh the values bound to UI elements"""
        self.ui_data['intake_display'] = f'{self.tracker.current_intake_ml} ml'
        self.ui_data['goal_display'] = f'of {self.tracker.daily_goal_ml} ml'
        self.ui_data['progress'] = self.tracker.progress()
        if self.notifications_enabled:
            now = time_service.get_accurate_time()
            self.ui_data['next_reminder'] = self.scheduler.next_reminder_description(now).text
        else:
            self.ui_data['next_reminder'] = ''

    async def _show_toast(self, message: str, type_: str = 'info'):
        """Show a toast notification - safe for background tasks"""
        try:
            ui.notify(
                message,
                type=type_,
                position='top-right',
                timeout=5000,
                close_button=True
            )
        except RuntimeError as e:
            if "slot stack" in str(e):
                # Called from background task - just log to console
                print(f"TOAST [{type_.upper()}]: {message}")
            else:
                raise

    async def _show_notification(self, notification: ReminderNotification):
        print(f"🔔 {notification.title}: {notification.body}")
        await self._show_toast(f'{notification.title}: {notification.body}')

    async def _reminder_callback(self, timer):
        """Called by the timer manager when any reminder timer fires"""
        await self._show_notification(self.scheduler.fire_reminder())
        self._update_ui_data()

    async def on_add_water(self, amount_ml: int):
        try:
            self.tracker.add_water(amount_ml)
        except InvalidAmount as e:
            await self._show_toast(str(e), 'warning')
        except StorageUnavailable as e:
            print(f"❌ {e}")
            await self._show_toast('Could not save intake, please try again', 'negative')
        self._update_ui_data()

    async def on_reset(self):
        try:
            self.tracker.reset_water()
        except StorageUnavailable as e:
            print(f"❌ {e}")
            await self._show_toast('Could not reset intake, please try again', 'negative')
        self._update_ui_data()

    async def on_goal_set(self, raw_value, dialog) -> None:
        """Validate dialog input and apply the new goal"""
        try:
            new_goal = int(raw_value)
        except (TypeError, ValueError):
            new_goal = None
        if new_goal is None or new_goal < self.min_goal_input_ml:
            await self._show_toast(f'Goal must be at least {self.min_goal_input_ml} ml.', 'warning')
            return

        try:
            self.tracker.update_goal(new_goal)
        except InvalidGoal as e:
            await self._show_toast(str(e), 'warning')
            return
        except StorageUnavailable as e:
            print(f"❌ {e}")
            await self._show_toast('Could not save goal, please try again', 'negative')
            return
        dialog.close()
        self._update_ui_data()

    async def on_send_test_notification(self):
        await self._show_notification(self.scheduler.test_notification())

    async def on_schedule_delayed(self):
        try:
            self.scheduler.schedule_one_shot(
                time_service.get_accurate_time(),
                timedelta(seconds=self.delayed_notification_seconds)
            )
        except AlarmRegistrationFailure as e:
            await self._show_toast(f'Notifications are not enabled: {e}', 'warning')
            return
        await self._show_toast(f'Notification scheduled in {self.delayed_notification_seconds} seconds!', 'positive')

    async def on_notifications_toggle(self, event):
        """Permission gate: reminders are armed only while notifications are allowed"""
        self.notifications_enabled = bool(event.value)
        self.timer_manager.permission_granted = self.notifications_enabled
        if self.notifications_enabled:
            if not self._schedule_reminders():
                await self._show_toast('Could not schedule reminders', 'warning')
        else:
            self.scheduler.cancel_all()
            print("🔕 Daily reminders cancelled")
        self._update_ui_data()

    def _create_goal_dialog(self):
        with ui.dialog() as dialog, ui.card():
            ui.label('Set Your Daily Goal').classes('text-xl font-semibold')
            goal_input = ui.input(
                'Goal in ml',
                value=str(self.tracker.daily_goal_ml),
                validation={f'Goal must be at least {self.min_goal_input_ml} ml.':
                            lambda v: v.isdigit() and int(v) >= self.min_goal_input_ml}
            )
            with ui.row():
                ui.button('Cancel', on_click=dialog.close).props('flat')
                ui.button('Save', on_click=lambda: self.on_goal_set(goal_input.value, dialog))
        return dialog

    def create_ui(self):
        """Create the main UI"""
        ui.page_title('HydroTrack')
        goal_dialog = self._create_goal_dialog()

        with ui.card().classes('w-full max-w-md mx-auto p-6 items-center'):
            with ui.row().classes('items-center'):
                ui.label('Hydration Goal').classes('text-2xl font-bold')
                ui.button(icon='edit', on_click=goal_dialog.open).props('flat round')

            ui.circular_progress(min=0, max=1, show_value=False, size='200px') \
                .bind_value_from(self.ui_data, 'progress')
            ui.label().classes('text-4xl font-bold').bind_text_from(self.ui_data, 'intake_display')
            ui.label().classes('text-gray-500').bind_text_from(self.ui_data, 'goal_display')

            with ui.row().classes('gap-4'):
                ui.button('250ml', icon='add', on_click=lambda: self.on_add_water(250))
                ui.button('500ml', icon='add', on_click=lambda: self.on_add_water(500))

            ui.button('Reset', icon='delete', on_click=self.on_reset).classes('bg-red-500')
            ui.button('Send Test Notification', on_click=self.on_send_test_notification)
            ui.button(f'Send Notification in {self.delayed_notification_seconds}s',
                      on_click=self.on_schedule_delayed)

            ui.switch('Daily reminders', value=self.notifications_enabled,
                      on_change=self.on_notifications_toggle)
            ui.label().classes('text-sm text-gray-600').bind_text_from(self.ui_data, 'next_reminder')

        # Keep the countdown text fresh
        ui.timer(30.0, callback=self._update_ui_data)
        self._update_ui_data()

# Global app instance
hydro_app = HydroTrackApp()

@ui.page('/')
async def index():
    hydro_app.create_ui()

# Startup and shutdown handlers
async def on_startup():
    """App startup handler"""
    try:
        await hydro_app.initialize_app()
    except Exception as e:
        print(f"❌ Error initializing app: {e}")

    # Start the timer loop even if initialization failed
    try:
        await hydro_app.timer_manager.start()
    except Exception as e:
        print(f"Error starting timer manager: {e}")

async def on_shutdown():
    """App shutdown handler"""
    try:
        await hydro_app.timer_manager.stop()
        print("App shutdown complete")
    except Exception as e:
        print(f"Error during shutdown: {e}")

app.on_startup(on_startup)
app.on_shutdown(on_shutdown)

if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title='HydroTrack',
        port=int(os.getenv('PORT', 8080)),
        show=True,
        reload=False
    )
