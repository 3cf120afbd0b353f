"""Top-level controller for PomoTrack.

Owns the single ``AppState`` container and wires the timer, the local
store, the sync client and the AI providers around it.  The tray shell
and the CLI talk to this class only.

Startup order matters: stored data is loaded, today's remote document is
merged in, and only then is an interrupted timer recovered.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from pomotrack.ai.providers import ProviderError, UnknownProviderError, create_client, load_providers
from pomotrack.core.models import AppState, Project, Session, SessionType, Stats
from pomotrack.core.scheduler import Scheduler, TaskHandle, ThreadScheduler
from pomotrack.core.timer import TimerStateMachine, generate_id
from pomotrack.core.timeutil import today, utcnow
from pomotrack.persistence.store import CredentialStore, LocalStore
from pomotrack.reporting.insights import build_insights_prompt
from pomotrack.reporting.stats import compute_stats
from pomotrack.sync.client import FetchStatus, SyncClient, UploadResult
from pomotrack.sync.merge import MergeResult, merge_remote

logger = logging.getLogger(__name__)

DEFAULT_PROJECTS = [
    Project(id="proj1", name="Work Project", color="#00ff88"),
    Project(id="proj2", name="Side Project", color="#ff6b35"),
    Project(id="proj3", name="Learning", color="#00d4ff"),
]

DEFAULT_PROJECT_COLOR = "#00ff88"


class Tracker:
    """Coordinates timer, persistence and sync for one user.

    *notifier* is called as ``notifier(title, message)`` when a Pomodoro
    or break completes; the tray shell passes its own notification hook.
    """

    def __init__(
        self,
        config: dict[str, Any],
        store: LocalStore,
        sync_client: Optional[SyncClient] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], datetime] = utcnow,
        notifier: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.clock = clock
        self.notifier = notifier
        self.scheduler = scheduler or ThreadScheduler()
        self.state = AppState()
        self.credentials = CredentialStore(store)
        self.sync_client = sync_client or SyncClient(
            config.get("api_url", ""),
            timeout=config.get("request_timeout_seconds", 10),
        )
        self.timer = TimerStateMachine(
            self.state,
            store,
            min_session_duration=config.get("min_session_duration_seconds", 60),
            default_pomodoro_seconds=config.get("default_pomodoro_seconds", 25 * 60),
            display_hold_seconds=config.get("display_hold_seconds", 3),
            recovery_max_age=timedelta(hours=config.get("recovery_max_age_hours", 24)),
            clock=clock,
            scheduler=self.scheduler,
            on_complete=self._on_timer_complete,
        )
        self._sync_handle: Optional[TaskHandle] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load_data(self) -> None:
        """Populate the state container from the local store."""
        with self.timer.lock:
            projects = self.store.load_projects()
            if not projects:
                projects = [Project(p.id, p.name, p.color) for p in DEFAULT_PROJECTS]
                self.store.save_projects(projects)
            self.state.projects = projects
            self.state.sessions = self.store.load_sessions()

            pomodoro = self.state.pomodoro
            pomodoro.enabled = bool(self.config.get("pomodoro_mode", True))
            pomodoro.duration_seconds = self.timer.default_pomodoro_seconds
            pomodoro.remaining_seconds = 0
        logger.info(
            "Loaded %d projects and %d sessions",
            len(self.state.projects), len(self.state.sessions),
        )

    def startup(self) -> bool:
        """Load, merge today's remote document, then recover the timer.

        Returns ``True`` when an interrupted timer was restored.
        """
        self.load_data()
        self.merge_today()
        return self.timer.recover()

    def shutdown(self) -> None:
        """Stop auto-sync and scheduled timer work.  The recovery snapshot stays."""
        self.stop_auto_sync()
        self.timer.shutdown()

    # ------------------------------------------------------------------
    # Projects and sessions
    # ------------------------------------------------------------------

    def add_project(self, name: str, color: str = DEFAULT_PROJECT_COLOR) -> Project:
        name = (name or "").strip()
        if not name:
            raise ValueError("Project name must not be empty")
        with self.timer.lock:
            project = Project(id=generate_id(), name=name, color=color)
            self.state.projects.append(project)
            self.store.save_projects(self.state.projects)
        logger.info("Added project %s (%s)", project.name, project.id)
        return project

    def delete_project(self, project_id: str) -> int:
        """Remove a project and every session recorded against it.

        An active timer on the project is discarded first.  Returns the
        number of sessions removed.
        """
        with self.timer.lock:
            timer = self.state.timer
            if timer is not None and timer.target == project_id:
                self.timer.stop(save=False)

            self.state.projects = [p for p in self.state.projects if p.id != project_id]
            kept = [s for s in self.state.sessions if s.project_id != project_id]
            removed = len(self.state.sessions) - len(kept)
            self.state.sessions = kept
            self.store.save_projects(self.state.projects)
            self.store.save_sessions(self.state.sessions)
        logger.info("Deleted project %s and %d sessions", project_id, removed)
        return removed

    def today_sessions(self) -> list[Session]:
        """Today's sessions, newest first."""
        day = today(self.clock())
        with self.timer.lock:
            sessions = [s for s in self.state.sessions if s.date == day]
        return sorted(sessions, key=lambda s: s.end_time, reverse=True)

    def stats(self) -> Stats:
        with self.timer.lock:
            sessions = list(self.state.sessions)
            projects = list(self.state.projects)
        return compute_stats(sessions, projects, self.clock())

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def merge_today(self) -> Optional[MergeResult]:
        """Fetch today's remote document and fold it into local state.

        Returns ``None`` when there was nothing to merge or the fetch failed.
        """
        if not self.sync_client.enabled:
            return None
        result = self.sync_client.fetch_day(today(self.clock()))
        if result.status is FetchStatus.NOT_FOUND:
            logger.info("No remote data for today")
            return None
        if not result.found:
            logger.warning("Could not load today's remote data: %s", result.error)
            return None
        with self.timer.lock:
            return merge_remote(self.state, self.store, result.document)

    def sync_now(self) -> UploadResult:
        """Upload today's sessions and the full project list."""
        with self.timer.lock:
            sessions = list(self.state.sessions)
            projects = list(self.state.projects)
        return self.sync_client.upload(sessions, projects, self.clock())

    def start_auto_sync(self) -> bool:
        """Schedule periodic uploads.  Returns ``False`` when auto-sync is off."""
        minutes = self.config.get("auto_sync_interval_minutes", 5)
        if not minutes or not self.sync_client.enabled:
            logger.info("Auto-sync disabled")
            return False
        self.stop_auto_sync()
        self._sync_handle = self.scheduler.every(minutes * 60, self._auto_sync_tick)
        logger.info("Auto-sync every %s minutes", minutes)
        return True

    def stop_auto_sync(self) -> None:
        if self._sync_handle is not None:
            self._sync_handle.cancel()
            self._sync_handle = None

    def _auto_sync_tick(self) -> None:
        if not self.state.sessions:
            logger.debug("Auto-sync skipped: no sessions")
            return
        self.sync_now()

    # ------------------------------------------------------------------
    # AI insights
    # ------------------------------------------------------------------

    def ai_providers(self):
        return load_providers(self.config.get("ai_providers", {}))

    def select_ai_provider(self, provider_key: str, model: str = "") -> str:
        """Persist the provider and model used for insights; returns the model.

        Picking a provider without a model selects its default model.
        """
        provider = self.ai_providers().get(provider_key)
        if provider is None:
            raise UnknownProviderError(f"Provider not supported: {provider_key}")
        if not model:
            model = provider.default_model
        elif provider.models and model not in provider.models:
            raise ProviderError(
                f"Model {model} is not available for {provider.name}; "
                f"choose one of: {', '.join(provider.models)}"
            )
        self.credentials.set_selection(provider_key, model)
        logger.info("AI provider set to %s (%s)", provider_key, model)
        return model

    def save_api_key(self, provider_key: str, api_key: str) -> bool:
        """Store *api_key* for one provider.  An empty key removes it.

        Returns ``True`` when a key is now stored.
        """
        provider = self.ai_providers().get(provider_key)
        if provider is None:
            raise UnknownProviderError(f"Provider not supported: {provider_key}")
        if provider.local:
            raise ProviderError(f"{provider.name} runs locally and needs no API key")
        self.credentials.set_key(provider_key, api_key or "")
        saved = bool(self.credentials.get_key(provider_key))
        logger.info("API key %s for %s", "saved" if saved else "removed", provider_key)
        return saved

    def generate_insights(self) -> str:
        """Ask the selected AI provider for suggestions based on recent history.

        Raises ``ProviderError`` subclasses; a missing credential is reported
        before any network request is made.
        """
        providers = self.ai_providers()
        provider_key, model = self.credentials.get_selection()
        client = create_client(
            providers,
            provider_key,
            model=model,
            api_key=self.credentials.get_key(provider_key),
        )

        history_days = self.config.get("history_days", 30)
        now = self.clock()
        with self.timer.lock:
            local_sessions = list(self.state.sessions)
            projects = list(self.state.projects)
        sessions = local_sessions
        days_with_data = None

        result = self.sync_client.fetch_history(history_days, now)
        if result.found:
            sessions = result.document.sessions
            known = {p.id for p in projects}
            projects += [p for p in result.document.projects if p.id not in known]
            days_with_data = result.document.files_loaded
        else:
            logger.info("Using local sessions for insights")

        prompt = build_insights_prompt(
            sessions,
            projects,
            compute_stats(local_sessions, projects, now),
            days_with_data=days_with_data,
            history_days=history_days,
        )
        return client.complete(prompt)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _on_timer_complete(self, session: Session) -> None:
        if self.notifier is None or not self.config.get("notifications_enabled", True):
            return
        if session.type is SessionType.BREAK:
            self.notifier("Break finished!", "Ready to get back to work?")
        else:
            minutes = round(session.duration / 60)
            self.notifier("Pomodoro completed!", f"{minutes} minute session finished")
