"""Request fencing for wizard sessions.

Tickets let the wizard tell whether an asynchronous completion still
belongs to the current state. Not exposed outside the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class RequestKind(Enum):
    """Kinds of backend request a wizard issues."""

    CATALOG = auto()
    COLUMNS = auto()
    RELATIONSHIPS = auto()
    BUILD = auto()


@dataclass(frozen=True)
class RequestTicket:
    """Identifies one issued request so its completion can be fenced."""

    kind: RequestKind
    epoch: int
    sequence: int
    scope: str = ""


@dataclass
class RequestFence:
    """Hands out tickets and decides whether a completion is still current.

    A ticket is current while the session epoch is unchanged (no reset since
    issue) and no newer ticket of the same kind and scope has been issued.
    """

    epoch: int = 0
    _latest: dict[tuple[RequestKind, str], int] = field(default_factory=dict)
    _counter: int = 0

    def issue(self, kind: RequestKind, scope: str = "") -> RequestTicket:
        self._counter += 1
        self._latest[(kind, scope)] = self._counter
        return RequestTicket(kind=kind, epoch=self.epoch, sequence=self._counter, scope=scope)

    def is_current(self, ticket: RequestTicket) -> bool:
        if ticket.epoch != self.epoch:
            return False
        return self._latest.get((ticket.kind, ticket.scope)) == ticket.sequence

    def invalidate(self, kind: RequestKind, scope: str = "") -> None:
        """Invalidate the outstanding ticket for one kind and scope."""
        self._latest.pop((kind, scope), None)

    def bump(self) -> None:
        """Invalidate every outstanding ticket."""
        self.epoch += 1
        self._latest.clear()

