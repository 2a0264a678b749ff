"""
Poll Execution Engine

Dispatches the message batch of a PASSED poll exactly once:
  - only between `executable_height` and `expiration_height`
  - in the order stored on the poll
  - all-or-nothing: if any message fails, every effect of the batch is
    rolled back and the poll is recorded as FAILED
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..contracts.router import ContractRouter
from ..exceptions import (
    AlreadyExecutedError,
    ExecutionWindowClosedError,
    NotPassedError,
    TimelockNotExpiredError,
)
from ..logger import get_logger
from ..transaction import Checkpointable, atomic
from .polls import Poll, PollStatus
from .registry import PollRegistry

logger = get_logger(__name__)


@dataclass
class ExecutionReport:
    """Outcome of executing one poll."""
    poll_id: int
    status: PollStatus
    height: int
    dispatched: int = 0
    failed_index: Optional[int] = None
    error: Optional[str] = None
    replies: List[Any] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == PollStatus.EXECUTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pollId": self.poll_id,
            "status": self.status.name,
            "height": self.height,
            "dispatched": self.dispatched,
            "failedIndex": self.failed_index,
            "error": self.error,
        }


class ExecutionEngine:
    """
    Runs passed polls' messages against owned contracts.

    Args:
        registry:     Poll registry the polls live in
        router:       Address book of owned contracts
        sender:       Address messages are sent from (the governance contract)
        addresses:    Well-known addresses ("governance", "community") used
                      to resolve message destinations
        participants: Callable returning the extra Checkpointable state a
                      batch may touch (token ledger, governance config)
    """

    def __init__(
        self,
        registry: PollRegistry,
        router: ContractRouter,
        sender: str,
        addresses: Dict[str, str],
        participants: Callable[[], Iterable[Checkpointable]] = lambda: (),
    ):
        self.registry = registry
        self.router = router
        self.sender = sender
        self.addresses = addresses
        self._participants = participants
        self._log: List[ExecutionReport] = []

    @property
    def execution_log(self) -> List[ExecutionReport]:
        return list(self._log)

    def check_executable(self, poll: Poll, height: int):
        if poll.status in (PollStatus.EXECUTED, PollStatus.FAILED):
            raise AlreadyExecutedError(
                f"Poll #{poll.id} was already executed (status={poll.status.name})"
            )
        if poll.status != PollStatus.PASSED:
            raise NotPassedError(f"Poll #{poll.id} is not PASSED (status={poll.status.name})")
        if height < poll.executable_height:
            raise TimelockNotExpiredError(
                f"Poll #{poll.id} is executable from height {poll.executable_height} "
                f"(current {height})"
            )
        if height >= poll.expiration_height:
            raise ExecutionWindowClosedError(
                f"Execution window of poll #{poll.id} closed at height {poll.expiration_height}"
            )

    def execute(self, poll_id: int, height: int) -> ExecutionReport:
        """
        Dispatch the poll's batch.

        Lifecycle errors are raised before anything happens. A failing
        message does not raise: the batch is rolled back, the poll moves to
        FAILED and the report carries the error.
        """
        poll = self.registry.get(poll_id)
        self.check_executable(poll, height)

        report = ExecutionReport(poll_id=poll.id, status=PollStatus.PASSED, height=height)
        participants = list(self._participants()) + self.router.checkpointable()
        try:
            with atomic(participants):
                for index, message in enumerate(poll.messages):
                    report.failed_index = index
                    destination = message.destination(self.addresses)
                    reply = self.router.dispatch(self.sender, destination, message.payload())
                    report.replies.append(reply)
                    report.dispatched += 1
                report.failed_index = None
        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            report.replies = []
            report.dispatched = 0
            poll.failure_reason = report.error
            poll.transition_to(
                PollStatus.FAILED,
                height,
                f"Message {report.failed_index} failed: {report.error}",
            )
            logger.warning(
                f"Poll #{poll.id} execution FAILED at message {report.failed_index}: "
                f"{report.error}",
                exc_info=True,
            )
        else:
            poll.transition_to(
                PollStatus.EXECUTED, height, f"{report.dispatched} message(s) dispatched"
            )

        poll.executed_height = height
        report.status = poll.status
        self._log.append(report)
        return report

    def __repr__(self) -> str:
        return f"<ExecutionEngine executed={len(self._log)}>"
