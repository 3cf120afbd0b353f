"""PomoTrack application entry point.

Supports two modes:
  - GUI mode (default): launches the system tray application
  - CLI mode: prints a report, syncs, asks for AI insights, serves the
    sync endpoint, or manages projects and AI settings

Usage:
    python -m pomotrack.main              # GUI mode
    python -m pomotrack.main --today      # print today's statistics
    python -m pomotrack.main --week       # print the last seven days
    python -m pomotrack.main --sync       # upload today's sessions
    python -m pomotrack.main --insights   # print AI productivity suggestions
    python -m pomotrack.main --serve      # run the sync endpoint
    python -m pomotrack.main --projects   # list projects and their ids
    python -m pomotrack.main --add-project "Writing" --color "#ff0000"
    python -m pomotrack.main --delete-project <id>
    python -m pomotrack.main --set-ai-provider groq [--model <model>]
    python -m pomotrack.main --set-api-key groq <key>
"""

import argparse
import logging
import os
import sys
from datetime import date

from pomotrack.ai.providers import ProviderError
from pomotrack.core.config import get_default_config_path, load_config
from pomotrack.core.tracker import DEFAULT_PROJECT_COLOR, Tracker
from pomotrack.persistence.store import LocalStore
from pomotrack.reporting.formatter import TextFormatter


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="pomotrack",
        description="PomoTrack - Pomodoro timer and time tracker",
    )
    parser.add_argument(
        "--config",
        help="Path to config.json (defaults to the platform data directory)",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--today",
        action="store_true",
        help="Print today's statistics and exit",
    )
    group.add_argument(
        "--week",
        action="store_true",
        help="Print the last seven days and exit",
    )
    group.add_argument(
        "--sync",
        action="store_true",
        help="Merge today's remote data, upload today's sessions and exit",
    )
    group.add_argument(
        "--insights",
        action="store_true",
        help="Print AI suggestions based on recent history and exit",
    )
    group.add_argument(
        "--serve",
        action="store_true",
        help="Run the remote sync endpoint in the foreground",
    )
    group.add_argument(
        "--projects",
        action="store_true",
        help="List projects with their ids and exit",
    )
    group.add_argument(
        "--add-project",
        metavar="NAME",
        help="Create a project (see --color) and exit",
    )
    group.add_argument(
        "--delete-project",
        metavar="ID",
        help="Delete a project and all of its sessions, then exit",
    )
    group.add_argument(
        "--set-ai-provider",
        metavar="PROVIDER",
        help="Select the AI provider used by --insights (see --model) and exit",
    )
    group.add_argument(
        "--set-api-key",
        nargs=2,
        metavar=("PROVIDER", "KEY"),
        help="Save the API key for an AI provider (an empty KEY removes it) and exit",
    )
    parser.add_argument(
        "--color",
        default=DEFAULT_PROJECT_COLOR,
        help=f"Color for --add-project (default {DEFAULT_PROJECT_COLOR})",
    )
    parser.add_argument(
        "--model",
        default="",
        help="Model for --set-ai-provider (defaults to the provider's default model)",
    )
    return parser


def _open_store(config: dict) -> LocalStore:
    db_path = os.path.expanduser(config["database_path"])
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    store = LocalStore(db_path)
    store.init_db()
    return store


def _print_today(config: dict) -> None:
    """Load local data and print today's statistics."""
    store = _open_store(config)
    try:
        tracker = Tracker(config, store)
        tracker.load_data()
        print(TextFormatter.format_today(tracker.stats(), tracker.state.projects, date.today()))
    finally:
        store.close()


def _print_week(config: dict) -> None:
    """Load local data and print the seven-day report."""
    store = _open_store(config)
    try:
        tracker = Tracker(config, store)
        tracker.load_data()
        print(TextFormatter.format_week(tracker.stats()))
    finally:
        store.close()


def _sync(config: dict) -> int:
    """Merge today's remote document, then upload.  Returns an exit code."""
    store = _open_store(config)
    try:
        tracker = Tracker(config, store)
        tracker.load_data()
        tracker.merge_today()
        result = tracker.sync_now()
    finally:
        store.close()
    if result:
        print(f"Synced {result.date} ({result.key})")
        return 0
    print(f"Sync failed: {result.error}", file=sys.stderr)
    return 1


def _print_insights(config: dict) -> int:
    """Ask the selected AI provider for suggestions.  Returns an exit code."""
    store = _open_store(config)
    try:
        tracker = Tracker(config, store)
        tracker.load_data()
        text = tracker.generate_insights()
    except ProviderError as exc:
        print(f"AI insights failed: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()
    print(text)
    return 0


def _list_projects(config: dict) -> None:
    store = _open_store(config)
    try:
        tracker = Tracker(config, store)
        tracker.load_data()
        for project in tracker.state.projects:
            print(f"{project.id:<12} {project.color:<9} {project.name}")
    finally:
        store.close()


def _add_project(config: dict, name: str, color: str) -> int:
    store = _open_store(config)
    try:
        tracker = Tracker(config, store)
        tracker.load_data()
        project = tracker.add_project(name, color)
    except ValueError as exc:
        print(f"Could not add project: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()
    print(f"Added project {project.name} ({project.id})")
    return 0


def _delete_project(config: dict, project_id: str) -> int:
    """Delete a project and cascade to its sessions.  Returns an exit code."""
    store = _open_store(config)
    try:
        tracker = Tracker(config, store)
        tracker.load_data()
        project = tracker.state.find_project(project_id)
        if project is None:
            print(f"Unknown project: {project_id}", file=sys.stderr)
            return 1
        removed = tracker.delete_project(project_id)
    finally:
        store.close()
    print(f"Deleted project {project.name} and {removed} sessions")
    return 0


def _set_ai_provider(config: dict, provider: str, model: str) -> int:
    store = _open_store(config)
    try:
        model = Tracker(config, store).select_ai_provider(provider, model)
    except ProviderError as exc:
        print(f"Could not select AI provider: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()
    print(f"AI provider set to {provider} ({model})")
    return 0


def _set_api_key(config: dict, provider: str, api_key: str) -> int:
    store = _open_store(config)
    try:
        saved = Tracker(config, store).save_api_key(provider, api_key)
    except ProviderError as exc:
        print(f"Could not save API key: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()
    print(f"API key {'saved' if saved else 'removed'} for {provider}")
    return 0


def _serve(config: dict) -> None:
    """Run the Flask sync endpoint backed by a directory of JSON files."""
    # Imported here so CLI reports do not need Flask loaded.
    from pomotrack.server.app import run_server
    from pomotrack.server.objectstore import DirectoryObjectStore

    server = config["server"]
    store = DirectoryObjectStore(os.path.expanduser(server["storage_directory"]))
    run_server(store, host=server["host"], port=int(server["port"]))


def main(args: list[str] | None = None) -> int:
    """Entry point for PomoTrack.

    When *args* is ``None`` the arguments are read from ``sys.argv``.
    """
    parser = build_parser()
    parsed = parser.parse_args(args)

    config_path = parsed.config or str(get_default_config_path())
    config = load_config(config_path)

    logging.basicConfig(
        level=logging.DEBUG if config.get("debug") else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if parsed.today:
        _print_today(config)
    elif parsed.week:
        _print_week(config)
    elif parsed.sync:
        return _sync(config)
    elif parsed.insights:
        return _print_insights(config)
    elif parsed.serve:
        _serve(config)
    elif parsed.projects:
        _list_projects(config)
    elif parsed.add_project is not None:
        return _add_project(config, parsed.add_project, parsed.color)
    elif parsed.delete_project is not None:
        return _delete_project(config, parsed.delete_project)
    elif parsed.set_ai_provider is not None:
        return _set_ai_provider(config, parsed.set_ai_provider, parsed.model)
    elif parsed.set_api_key is not None:
        provider, api_key = parsed.set_api_key
        return _set_api_key(config, provider, api_key)
    else:
        # GUI mode; import here to avoid pulling in pystray for CLI usage
        from pomotrack.ui.app import PomoTrackApp

        app = PomoTrackApp(config_path)
        app.start()
    return 0


if __name__ == "__main__":
    sys.exit(main())
