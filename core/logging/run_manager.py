"""Run tracking for log rotation.

A run is one logical unit of work, e.g. one graph session or one test
module. The first write to each log file inside a run rotates that file.

Usage:
    from core.logging import start_run, end_run

    start_run("session-abc123")
    try:
        await materializer.load_entity_graph("W2741809807")
    finally:
        end_run()
"""

from contextvars import ContextVar
from dataclasses import dataclass, field
from functools import lru_cache

# Module path prefix -> log file name. The longest matching prefix wins;
# anything unmapped is third-party and lands in "misc"
MODULE_TO_LOG = {
    # Graph engine
    "citegraph.relationships": "citegraph-detection",
    "citegraph.materializer": "citegraph-materializer",
    "citegraph.deduplication": "citegraph-dedup",
    "citegraph.expansion": "citegraph-expansion",
    "citegraph": "citegraph",
    # Upstream provider
    "core.openalex": "openalex",
    # Infrastructure
    "core.utils": "utils",
    "core.config": "config",
    "core.logging": "logging-internal",
    "testing": "testing",
}

FALLBACK_LOG = "misc"

_PREFIXES_LONGEST_FIRST = sorted(MODULE_TO_LOG, key=len, reverse=True)


@dataclass
class _RunState:
    run_id: str
    rotated: set[str] = field(default_factory=set)


# Per-context, so concurrent sessions in one event loop keep separate runs
_run_state: ContextVar[_RunState | None] = ContextVar("log_run_state", default=None)


def start_run(run_id: str) -> None:
    """Begin a run. Every log file rotates again on its next write."""
    _run_state.set(_RunState(run_id))


def end_run() -> None:
    """Leave the current run. Files are not rotated outside a run."""
    _run_state.set(None)


def get_current_run_id() -> str | None:
    state = _run_state.get()
    return state.run_id if state else None


def should_rotate(log_name: str) -> bool:
    """True exactly once per log file per run; always False outside a run."""
    state = _run_state.get()
    if state is None or log_name in state.rotated:
        return False
    state.rotated.add(log_name)
    return True


@lru_cache(maxsize=1024)
def module_to_log_name(module_name: str) -> str:
    """Log file name (without .log) for a logger name.

    Example:
        module_to_log_name("citegraph.relationships.detector")  # "citegraph-detection"
    """
    return _compute_log_name(module_name)


def is_first_party(module_name: str) -> bool:
    """Whether a logger belongs to this project rather than a library."""
    return module_to_log_name(module_name) != FALLBACK_LOG


def _compute_log_name(module_name: str) -> str:
    for prefix in _PREFIXES_LONGEST_FIRST:
        if module_name == prefix or module_name.startswith(prefix + "."):
            return MODULE_TO_LOG[prefix]
    return FALLBACK_LOG
