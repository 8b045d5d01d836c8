"""
Per-graph undo/redo history.

Each graph owns a HistoryState: a bounded ``past`` stack (oldest entries
evicted) and a ``future`` stack that any new commit clears. Discrete
actions commit immediately; continuous input (typing, slider release)
captures the pre-edit snapshot once per burst and commits it when the
quiet period elapses without another edit.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Optional

import config
from workspace.models import GraphSnapshot
from workspace.scheduler import Debouncer

if TYPE_CHECKING:
    from workspace.registry import GraphRecord, GraphRegistry

logger = logging.getLogger("graphdeck")

HISTORY_CONCERN = "history"


class HistoryState:
    """Undo/redo stacks of one graph (newest entries last)."""

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity if capacity is not None else config.HISTORY_CAPACITY
        self.past: deque[GraphSnapshot] = deque(maxlen=self.capacity)
        self.future: list[GraphSnapshot] = []
        self.pending: Optional[GraphSnapshot] = None

    def push(self, snapshot: GraphSnapshot) -> None:
        """Commit *snapshot*: append to past (evicting the oldest) and drop redo."""
        self.past.append(snapshot)
        self.future.clear()

    def clear(self) -> None:
        self.past.clear()
        self.future.clear()
        self.pending = None


class HistoryManager:
    """Records, coalesces and replays graph snapshots.

    Operations on unknown or deleted graph ids are no-ops returning False.
    """

    def __init__(
        self,
        registry: GraphRegistry,
        debouncer: Debouncer,
        quiet_period_ms: Optional[float] = None,
    ):
        self._registry = registry
        self._debouncer = debouncer
        self.quiet_period_ms = (
            quiet_period_ms if quiet_period_ms is not None else config.HISTORY_QUIET_PERIOD_MS
        )

    def _record(self, graph_id: int) -> Optional[GraphRecord]:
        return self._registry.get(graph_id)

    def record_immediate(self, graph_id: int) -> bool:
        """Commit the graph's current configuration as one undo step."""
        record = self._record(graph_id)
        if record is None:
            return False
        self.flush(graph_id)
        record.history.push(record.graph.snapshot())
        logger.debug(f"History: graph {graph_id} committed ({len(record.history.past)} undo steps)")
        return True

    def commit(self, graph_id: int, snapshot: GraphSnapshot) -> bool:
        """Commit a caller-built "before" snapshot as one undo step."""
        record = self._record(graph_id)
        if record is None:
            return False
        self.flush(graph_id)
        record.history.push(snapshot)
        return True

    def schedule_coalesced(self, graph_id: int) -> bool:
        """Capture the pre-edit state once per burst and (re)start the quiet period.

        Call this *before* mutating the graph.
        """
        record = self._record(graph_id)
        if record is None:
            return False
        if record.history.pending is None:
            record.history.pending = record.graph.snapshot()
        self._debouncer.trigger(
            (graph_id, HISTORY_CONCERN),
            self.quiet_period_ms,
            lambda: self._commit_pending(graph_id),
        )
        return True

    def _commit_pending(self, graph_id: int) -> None:
        record = self._record(graph_id)
        if record is None or record.history.pending is None:
            return
        snapshot, record.history.pending = record.history.pending, None
        record.history.push(snapshot)
        logger.debug(f"History: graph {graph_id} committed coalesced edits")

    def flush(self, graph_id: int) -> bool:
        """Commit a pending burst right away. Returns True if there was one."""
        self._debouncer.cancel((graph_id, HISTORY_CONCERN))
        record = self._record(graph_id)
        if record is None or record.history.pending is None:
            return False
        self._commit_pending(graph_id)
        return True

    def has_pending(self, graph_id: int) -> bool:
        record = self._record(graph_id)
        return record is not None and record.history.pending is not None

    def undo(self, graph_id: int) -> bool:
        """Restore the previous snapshot. Returns True if the graph changed.

        The caller refreshes derived state (filter controls, traces).
        """
        record = self._record(graph_id)
        if record is None:
            return False
        self.flush(graph_id)
        history = record.history
        if not history.past:
            return False
        history.future.append(record.graph.snapshot())
        record.graph.restore(history.past.pop())
        return True

    def redo(self, graph_id: int) -> bool:
        """Re-apply the most recently undone snapshot."""
        record = self._record(graph_id)
        if record is None:
            return False
        self.flush(graph_id)
        history = record.history
        if not history.future:
            return False
        history.past.append(record.graph.snapshot())
        record.graph.restore(history.future.pop())
        return True

    def can_undo(self, graph_id: int) -> bool:
        record = self._record(graph_id)
        return record is not None and (bool(record.history.past) or record.history.pending is not None)

    def can_redo(self, graph_id: int) -> bool:
        record = self._record(graph_id)
        return record is not None and bool(record.history.future) and record.history.pending is None

    def cancel_pending(self, graph_id: int) -> None:
        """Cancel the quiet-period timer and drop any captured burst snapshot."""
        self._debouncer.cancel((graph_id, HISTORY_CONCERN))
        record = self._record(graph_id)
        if record is not None:
            record.history.pending = None

    def discard(self, graph_id: int) -> None:
        """Teardown for a deleted graph: cancel timers and drop all history."""
        self.cancel_pending(graph_id)
        record = self._record(graph_id)
        if record is not None:
            record.history.clear()
