"""
In-process counters for observability. Process-local; for multi-worker use external metrics (e.g. Prometheus).
"""
import threading
from collections import Counter

# Status transitions performed by the workflow engine, keyed "FROM->TO" ("NONE->DRAFT" for new chains).
workflow_transitions_total: Counter = Counter()
# createRevision / create calls that lost the race for the latest pointer.
revision_conflicts_total: int = 0
_lock = threading.Lock()


def record_transition(from_status: str | None, to_status: str) -> None:
    """Count one transition. Thread-safe."""
    with _lock:
        workflow_transitions_total[f"{from_status or 'NONE'}->{to_status}"] += 1


def increment_revision_conflicts_total() -> int:
    """Increment revision_conflicts_total; return new value. Thread-safe."""
    global revision_conflicts_total
    with _lock:
        revision_conflicts_total += 1
        return revision_conflicts_total


def snapshot() -> dict:
    with _lock:
        return {
            "workflow_transitions_total": dict(workflow_transitions_total),
            "revision_conflicts_total": revision_conflicts_total,
        }
