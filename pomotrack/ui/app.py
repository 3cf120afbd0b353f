"""System tray application for PomoTrack.

Provides a pystray-based tray icon whose menu starts, pauses and stops the
timer, picks the Pomodoro length, starts breaks, syncs and shows reports.
Timer ticks and auto-sync run on scheduler threads so the tray stays
responsive.
"""

import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from pomotrack.ai.providers import ProviderError
from pomotrack.core.config import load_config
from pomotrack.core.scheduler import RepeatingTask
from pomotrack.core.timeutil import format_time
from pomotrack.core.tracker import Tracker
from pomotrack.persistence.store import LocalStore
from pomotrack.reporting.formatter import TextFormatter

logger = logging.getLogger(__name__)

POMODORO_PRESETS = [("25 min", 25 * 60), ("50 min", 50 * 60), ("Free timer", 0)]
BREAK_PRESETS = [("5 min break", 5 * 60), ("15 min break", 15 * 60)]


def _create_default_icon():
    """Create a simple default icon image using PIL, or load from assets."""
    try:
        from PIL import Image, ImageDraw
    except ImportError:
        return None

    assets_dir = Path(__file__).resolve().parent.parent.parent / "assets"
    icon_path = assets_dir / "icon.png"
    if icon_path.exists():
        try:
            return Image.open(str(icon_path))
        except Exception:
            logger.debug("Could not load icon from %s, creating default", icon_path)

    # Fallback: a tomato-red disc on transparent 64x64
    img = Image.new("RGBA", (64, 64), (0, 0, 0, 0))
    ImageDraw.Draw(img).ellipse((6, 6, 58, 58), fill=(224, 72, 56))
    return img


class PomoTrackApp:
    """Runs PomoTrack as a system tray app."""

    TITLE_REFRESH_SECONDS = 1.0

    def __init__(self, config_path: str) -> None:
        self.config_path = config_path
        self.config = load_config(config_path)
        self.tracker: Optional[Tracker] = None
        self.tray_icon = None
        self._store: Optional[LocalStore] = None
        self._title_task: Optional[RepeatingTask] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Initialize components, restore state, and display the tray icon."""
        self._init_components()
        self.tracker.startup()
        self.tracker.start_auto_sync()
        self._run_tray()

    def stop(self) -> None:
        """Stop background work and clean up resources."""
        if self._title_task is not None:
            self._title_task.cancel()
            self._title_task = None
        if self.tracker is not None:
            self.tracker.shutdown()
        if self._store is not None:
            self._store.close()
            self._store = None
        if self.tray_icon is not None:
            try:
                self.tray_icon.stop()
            except Exception:
                logger.debug("Tray icon already stopped")
            self.tray_icon = None

    def status_text(self) -> str:
        """One-line timer status for the tray tooltip and menu header."""
        if self.tracker is None:
            return "PomoTrack"
        status = self.tracker.timer.status()
        if status.is_idle:
            return "Idle"
        if status.target == "break":
            label = "Break"
        else:
            project = self.tracker.state.find_project(status.target)
            label = project.name if project else status.target
        seconds = status.remaining_seconds if status.is_countdown else status.elapsed_seconds
        suffix = " (paused)" if status.is_paused else ""
        return f"{label} {format_time(seconds)}{suffix}"

    def start_project(self, project_id: str) -> None:
        if self.tracker is None:
            return
        self.tracker.timer.start(project_id)

    def toggle_pause(self) -> None:
        if self.tracker is None:
            return
        timer = self.tracker.timer
        if timer.status().is_paused:
            timer.resume()
        else:
            timer.pause()

    def stop_timer(self) -> None:
        if self.tracker is None:
            return
        session = self.tracker.timer.stop()
        if session is None:
            logger.info("Timer stopped; session too short to record")

    def start_break(self, seconds: int) -> None:
        if self.tracker is None:
            return
        self.tracker.timer.start_break(seconds)

    def set_pomodoro(self, seconds: int) -> None:
        if self.tracker is None:
            return
        self.tracker.timer.set_pomodoro_duration(seconds)

    def sync_now(self) -> None:
        if self.tracker is None:
            return
        result = self.tracker.sync_now()
        if result:
            self.notify("Sync", f"Synced {result.date}")
        else:
            self.notify("Sync failed", result.error or "Unknown error")

    def show_today(self) -> None:
        if self.tracker is None:
            return
        try:
            text = TextFormatter.format_today(
                self.tracker.stats(), self.tracker.state.projects, date.today()
            )
            self._show_popup("Today", text)
        except Exception:
            logger.exception("Failed to build today's report")

    def show_week(self) -> None:
        if self.tracker is None:
            return
        try:
            self._show_popup("Last 7 days", TextFormatter.format_week(self.tracker.stats()))
        except Exception:
            logger.exception("Failed to build weekly report")

    def show_insights(self) -> None:
        if self.tracker is None:
            return
        try:
            text = self.tracker.generate_insights()
        except ProviderError as exc:
            logger.error("AI insights failed: %s", exc)
            self.notify("AI insights", str(exc))
            return
        self._show_popup("AI insights", text)

    def select_ai_provider(self, provider_key: str) -> None:
        """Switch insights to *provider_key* with its default model."""
        if self.tracker is None:
            return
        try:
            model = self.tracker.select_ai_provider(provider_key)
        except ProviderError as exc:
            self.notify("AI provider", str(exc))
            return
        provider = self.tracker.ai_providers()[provider_key]
        if not provider.local and not self.tracker.credentials.get_key(provider_key):
            self.notify(
                "AI provider",
                f"{provider.name} ({model}) selected. Save a key with: "
                f"pomotrack --set-api-key {provider_key} KEY",
            )

    def notify(self, title: str, message: str) -> None:
        """Show a desktop notification, or log it when no tray is running."""
        if self.tray_icon is None:
            logger.info("%s: %s", title, message)
            return
        try:
            self.tray_icon.notify(message, title)
        except Exception:
            logger.info("%s: %s", title, message)

    # ------------------------------------------------------------------
    # Component initialization
    # ------------------------------------------------------------------

    def _init_components(self) -> None:
        """Wire up the store and tracker from config."""
        db_path = os.path.expanduser(self.config["database_path"])
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._store = LocalStore(db_path)
        self._store.init_db()
        self.tracker = Tracker(self.config, self._store, notifier=self.notify)

    # ------------------------------------------------------------------
    # System tray
    # ------------------------------------------------------------------

    def _build_menu(self):
        from pystray import Menu, MenuItem

        def _start_action(project_id):
            return lambda: self.start_project(project_id)

        def _project_checked(project_id):
            return lambda item: self._active_target() == project_id

        def _project_items():
            for project in list(self.tracker.state.projects):
                yield MenuItem(
                    project.name,
                    _start_action(project.id),
                    checked=_project_checked(project.id),
                )

        def _pomodoro_action(seconds):
            return lambda: self.set_pomodoro(seconds)

        def _pomodoro_checked(seconds):
            def _checked(item):
                pomodoro = self.tracker.state.pomodoro
                if seconds == 0:
                    return not pomodoro.counting_down
                return pomodoro.counting_down and pomodoro.duration_seconds == seconds
            return _checked

        def _break_action(seconds):
            return lambda: self.start_break(seconds)

        def _provider_action(provider_key):
            return lambda: self.select_ai_provider(provider_key)

        def _provider_checked(provider_key):
            return lambda item: self.tracker.credentials.get_selection()[0] == provider_key

        def _provider_items():
            for key, provider in self.tracker.ai_providers().items():
                yield MenuItem(
                    provider.name,
                    _provider_action(key),
                    checked=_provider_checked(key),
                    radio=True,
                )

        def _pause_label(item):
            return "Resume" if self.tracker.timer.status().is_paused else "Pause"

        return Menu(
            MenuItem(lambda item: self.status_text(), None, enabled=False),
            Menu.SEPARATOR,
            MenuItem("Start", Menu(_project_items)),
            MenuItem(_pause_label, lambda: self.toggle_pause()),
            MenuItem("Stop", lambda: self.stop_timer()),
            MenuItem("Pomodoro", Menu(*[
                MenuItem(label, _pomodoro_action(seconds), checked=_pomodoro_checked(seconds), radio=True)
                for label, seconds in POMODORO_PRESETS
            ])),
            MenuItem("Break", Menu(*[
                MenuItem(label, _break_action(seconds)) for label, seconds in BREAK_PRESETS
            ])),
            Menu.SEPARATOR,
            MenuItem("Today", lambda: self.show_today()),
            MenuItem("Last 7 Days", lambda: self.show_week()),
            MenuItem("AI Insights", lambda: self.show_insights()),
            MenuItem("AI Provider", Menu(_provider_items)),
            MenuItem("Sync Now", lambda: self.sync_now()),
            Menu.SEPARATOR,
            MenuItem("Quit", lambda: self._quit()),
        )

    def _run_tray(self) -> None:
        """Create and run the pystray system tray icon."""
        try:
            import pystray
        except ImportError:
            logger.warning(
                "pystray not available; running without system tray. "
                "Install pystray for tray icon support."
            )
            return

        icon_image = _create_default_icon()
        if icon_image is None:
            logger.warning("Could not create tray icon image; skipping tray")
            return

        self.tray_icon = pystray.Icon("PomoTrack", icon_image, "PomoTrack", self._build_menu())
        self._title_task = RepeatingTask(self.TITLE_REFRESH_SECONDS, self._refresh_title).start()
        self.tray_icon.run()

    def _refresh_title(self) -> None:
        icon = self.tray_icon
        if icon is None:
            return
        icon.title = self.status_text()
        icon.update_menu()

    def _active_target(self) -> Optional[str]:
        return self.tracker.timer.status().target

    def _quit(self) -> None:
        """Quit the application cleanly."""
        self.stop()

    # ------------------------------------------------------------------
    # UI helpers
    # ------------------------------------------------------------------

    def _show_popup(self, title: str, message: str) -> None:
        """Show a popup with the given message using native macOS dialogs."""
        if sys.platform == "darwin":
            self._osascript_display(title, message)
        else:
            self._fallback_popup(title, message)

    def _osascript_display(self, title: str, message: str) -> None:
        """Display text via a native macOS dialog."""
        import subprocess
        # Escape double quotes for AppleScript
        escaped = message.replace("\\", "\\\\").replace('"', '\\"')
        script = (
            f'display dialog "{escaped}" '
            f'with title "{title}" '
            f'buttons {{"OK"}} default button "OK"'
        )
        try:
            subprocess.Popen(
                ["osascript", "-e", script],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError:
            logger.info("%s:\n%s", title, message)

    def _fallback_popup(self, title: str, message: str) -> None:
        """Log the message when no GUI is available."""
        logger.info("%s:\n%s", title, message)
