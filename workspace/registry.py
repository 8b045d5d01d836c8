"""
Session-scoped registry of graphs and their derived state.

Everything that belongs to one graph (configuration, history, filter
range cache, last observed camera) lives on a single GraphRecord, so
deleting a graph drops all of it at once.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Iterator, Optional

from data_ops.filters import FilterRangeCache
from workspace.history import HistoryState
from workspace.models import Graph


@dataclass
class GraphRecord:
    graph: Graph
    history: HistoryState
    filters: FilterRangeCache
    camera: Optional[dict] = None


class GraphRegistry:
    """Graph records keyed by id, in creation order.

    Ids are assigned monotonically and never reused within a session.
    """

    def __init__(self):
        self._records: dict[int, GraphRecord] = {}
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    def add(self, record: GraphRecord) -> None:
        self._records[record.graph.id] = record

    def get(self, graph_id: int) -> Optional[GraphRecord]:
        return self._records.get(graph_id)

    def remove(self, graph_id: int) -> Optional[GraphRecord]:
        return self._records.pop(graph_id, None)

    def ids(self) -> list[int]:
        return list(self._records)

    def graphs(self) -> list[Graph]:
        return [record.graph for record in self._records.values()]

    def clear(self) -> None:
        self._records.clear()

    def __iter__(self) -> Iterator[GraphRecord]:
        return iter(list(self._records.values()))

    def __contains__(self, graph_id: int) -> bool:
        return graph_id in self._records

    def __len__(self) -> int:
        return len(self._records)
