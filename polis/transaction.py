"""
All-or-nothing execution context.

Stands in for the host chain's transaction boundary: every participant's
state is captured on entry and restored if the block raises, so a failed
batch of poll messages leaves no partial effects behind.

Participants implement the Checkpointable protocol: `snapshot()` returns an
opaque value, `restore(value)` puts the object back exactly as it was.
"""

from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Protocol, Tuple, runtime_checkable

from .logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class Checkpointable(Protocol):
    def snapshot(self) -> Any: ...

    def restore(self, state: Any) -> None: ...


class Checkpoint:
    """Saved state of a set of participants."""

    def __init__(self, participants: Iterable[Checkpointable]):
        self._saved: List[Tuple[Checkpointable, Any]] = [
            (obj, obj.snapshot()) for obj in participants
        ]

    def __len__(self) -> int:
        return len(self._saved)

    def restore(self):
        for obj, state in reversed(self._saved):
            obj.restore(state)


@contextmanager
def atomic(participants: Iterable[Checkpointable]) -> Iterator[Checkpoint]:
    """
    Run the enclosed block all-or-nothing over *participants*.

    The exception that aborted the block is re-raised after the rollback.
    """
    checkpoint = Checkpoint(participants)
    try:
        yield checkpoint
    except Exception:
        checkpoint.restore()
        logger.debug(f"Rolled back {len(checkpoint)} participant(s)")
        raise
