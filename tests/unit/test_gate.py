"""Tests for issue_pilot.engine.gate."""

import asyncio

import pytest

from issue_pilot.engine.gate import ApprovalGate


class TestApprovalGate:
    @pytest.mark.asyncio
    async def test_decision_before_wait(self):
        gate = ApprovalGate()

        assert gate.deliver(True) is True

        assert await gate.wait() is True
        assert gate.resolved
        assert not gate.closed

    @pytest.mark.asyncio
    async def test_wait_suspends_until_decision(self):
        gate = ApprovalGate()
        waiter = asyncio.create_task(gate.wait())
        await asyncio.sleep(0)

        assert not waiter.done()

        gate.deliver(False)

        assert await asyncio.wait_for(waiter, timeout=1) is False

    @pytest.mark.asyncio
    async def test_second_decision_refused(self):
        gate = ApprovalGate()
        gate.deliver(True)

        assert gate.deliver(False) is False
        assert await gate.wait() is True

    @pytest.mark.asyncio
    async def test_close_resolves_to_rejection(self):
        gate = ApprovalGate()
        waiter = asyncio.create_task(gate.wait())
        await asyncio.sleep(0)

        assert gate.close() is True

        assert await asyncio.wait_for(waiter, timeout=1) is False
        assert gate.closed
        assert gate.deliver(True) is False

    @pytest.mark.asyncio
    async def test_close_after_decision_is_noop(self):
        gate = ApprovalGate()
        gate.deliver(True)

        assert gate.close() is False
        assert not gate.closed
        assert await gate.wait() is True
