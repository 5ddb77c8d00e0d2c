"""One-shot approval gate between the operator and a suspended session."""

import asyncio


class ApprovalGate:
    """Single-slot rendezvous carrying one approve/reject decision.

    The first ``deliver`` or ``close`` wins; later calls are refused without
    blocking. Closing an unresolved gate resolves it to rejection, so a
    session waiting on a closed gate always moves on.

    Example:
        >>> gate = ApprovalGate()
        >>> gate.deliver(True)
        True
        >>> gate.deliver(False)
        False
        >>> await gate.wait()
        True
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._approved = False
        self._closed = False

    @property
    def resolved(self) -> bool:
        return self._event.is_set()

    @property
    def closed(self) -> bool:
        """True when the gate was resolved by ``close`` rather than a decision."""
        return self._closed

    def deliver(self, approved: bool) -> bool:
        """Record the decision. Returns False if the gate was already resolved."""
        if self._event.is_set():
            return False
        self._approved = approved
        self._event.set()
        return True

    def close(self) -> bool:
        """Resolve the gate to rejection. Returns False if already resolved."""
        if self._event.is_set():
            return False
        self._closed = True
        return self.deliver(False)

    async def wait(self) -> bool:
        """Suspend until the gate is resolved; True only for an approval."""
        await self._event.wait()
        return self._approved
