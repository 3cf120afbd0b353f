"""Identity-keyed reconciliation of a remote day document into local state."""

import logging
from dataclasses import dataclass

from pomotrack.core.models import AppState, DailySyncDocument
from pomotrack.persistence.store import LocalStore

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    projects_added: int = 0
    projects_updated: int = 0
    sessions_added: int = 0

    @property
    def projects_changed(self) -> bool:
        return bool(self.projects_added or self.projects_updated)

    @property
    def changed(self) -> bool:
        return self.projects_changed or bool(self.sessions_added)


def merge_document(state: AppState, document: DailySyncDocument) -> MergeResult:
    """Fold *document* into *state* in place.

    Projects: unknown ids are appended; a known id whose name or color
    differs is replaced wholesale by the remote entry.  Sessions: unknown
    ids are appended, existing sessions are never touched.  Applying the
    same document twice changes nothing the second time.
    """
    result = MergeResult()

    index = {p.id: i for i, p in enumerate(state.projects)}
    for remote in document.projects:
        i = index.get(remote.id)
        if i is None:
            state.projects.append(remote)
            index[remote.id] = len(state.projects) - 1
            result.projects_added += 1
            logger.debug("Added project from remote: %s", remote.name)
            continue
        local = state.projects[i]
        if local.name != remote.name or local.color != remote.color:
            state.projects[i] = remote
            result.projects_updated += 1
            logger.debug("Updated project from remote: %s", remote.name)

    known = {s.id for s in state.sessions}
    for remote in document.sessions:
        if remote.id in known:
            continue
        state.sessions.append(remote)
        known.add(remote.id)
        result.sessions_added += 1

    return result


def merge_remote(state: AppState, store: LocalStore, document: DailySyncDocument) -> MergeResult:
    """Merge *document* and persist whatever changed."""
    result = merge_document(state, document)
    if result.projects_changed:
        store.save_projects(state.projects)
    if result.sessions_added:
        store.save_sessions(state.sessions)
    if result.changed:
        logger.info(
            "Merged remote %s: %d projects added, %d updated, %d sessions added",
            document.date, result.projects_added, result.projects_updated,
            result.sessions_added,
        )
    return result
