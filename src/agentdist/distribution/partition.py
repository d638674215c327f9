"""Positional round-robin partitioning of records across agents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, List, Sequence, TypeVar

from agentdist.errors import NoEligibleWorkers
from agentdist.models import WorkerSnapshot


T = TypeVar("T")


@dataclass
class WorkerGroup(Generic[T]):
    """Records assigned to one agent, in input order."""

    worker: WorkerSnapshot
    items: List[T] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)


def distribute(records: Sequence[T], workers: Sequence[WorkerSnapshot]) -> List[WorkerGroup[T]]:
    """Assign ``records[i]`` to ``workers[i % len(workers)]``.

    One group is returned per worker, in worker order, even when it receives
    no records. The worker sequence is used as given; capping the pool is the
    caller's job.
    """

    if not workers:
        raise NoEligibleWorkers()
    groups: List[WorkerGroup[T]] = [WorkerGroup(worker=worker) for worker in workers]
    for index, record in enumerate(records):
        groups[index % len(groups)].items.append(record)
    return groups


def summarize(groups: Sequence[WorkerGroup]) -> list[dict[str, object]]:
    return [
        {"agent_id": group.worker.agent_id, "agent_name": group.worker.name, "count": group.count}
        for group in groups
    ]
