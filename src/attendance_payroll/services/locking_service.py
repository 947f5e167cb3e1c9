"""Run-level locks and payslip freezing at approval."""

from __future__ import annotations

import asyncio
import hashlib
import json
import threading
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attendance_payroll.models import PayrollRun, Payslip
from attendance_payroll.models.base import utcnow


class RunLockRegistry:
    """Per-run state-transition locks and cancellation events.

    Run lifecycle transitions go through one asyncio.Lock per run so two
    requests never move the same run at once. The cancel event is the only
    thing shared with the engine's worker threads.
    """

    def __init__(self) -> None:
        self._locks: defaultdict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._cancel_events: dict[UUID, threading.Event] = {}

    @asynccontextmanager
    async def hold(self, run_id: UUID) -> AsyncIterator[None]:
        async with self._locks[run_id]:
            yield

    def start_computation(self, run_id: UUID) -> threading.Event:
        event = threading.Event()
        self._cancel_events[run_id] = event
        return event

    def finish_computation(self, run_id: UUID) -> None:
        self._cancel_events.pop(run_id, None)

    def request_cancel(self, run_id: UUID) -> bool:
        """Signal an in-flight computation to stop; False if none is running."""
        event = self._cancel_events.get(run_id)
        if event is None:
            return False
        event.set()
        return True

    def is_computing(self, run_id: UUID) -> bool:
        return run_id in self._cancel_events

    def discard(self, run_id: UUID) -> None:
        """Forget a run that reached a terminal status."""
        if self.is_computing(run_id):
            return
        lock = self._locks.get(run_id)
        if lock is not None and not lock.locked():
            del self._locks[run_id]


class LockingService:
    """Freezes payslips when a run is approved.

    On approval every payslip and line gets locked_at, and each payslip
    stores a snapshot hash over its totals and line hashes. Release
    re-hashes and refuses to proceed if anything drifted.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_payslips_for_run(self, run: PayrollRun) -> int:
        """Lock all payslips of a run. Returns count of locked payslips."""
        locked_at = utcnow()
        payslips = await self._load_payslips(run.payroll_run_id)
        for payslip in payslips:
            payslip.snapshot_hash = self._compute_hash(self._snapshot(payslip))
            payslip.locked_at = locked_at
            for line in payslip.lines:
                line.locked_at = locked_at
        return len(payslips)

    async def verify_locks_intact(self, run: PayrollRun) -> list[str]:
        """Verify every payslip is still locked and unchanged.

        Returns list of error messages (empty if all intact).
        """
        errors: list[str] = []
        for payslip in await self._load_payslips(run.payroll_run_id):
            if payslip.locked_at is None:
                errors.append(f"Payslip for employee {payslip.employee_id} is not locked")
                continue
            if any(line.locked_at is None for line in payslip.lines):
                errors.append(f"Payslip for employee {payslip.employee_id} has unlocked lines")
            if payslip.snapshot_hash != self._compute_hash(self._snapshot(payslip)):
                errors.append(
                    f"Payslip for employee {payslip.employee_id} changed since approval"
                )
        return errors

    async def _load_payslips(self, run_id: UUID) -> list[Payslip]:
        result = await self.session.execute(
            select(Payslip)
            .where(Payslip.payroll_run_id == run_id)
            .options(selectinload(Payslip.lines))
            .order_by(Payslip.employee_id)
        )
        return list(result.scalars().all())

    @staticmethod
    def _snapshot(payslip: Payslip) -> dict[str, Any]:
        return {
            "employee_id": payslip.employee_id,
            "calculation_id": str(payslip.calculation_id),
            "gross_pay": f"{payslip.gross_pay:.2f}",
            "total_deductions": f"{payslip.total_deductions:.2f}",
            "net_pay": f"{payslip.net_pay:.2f}",
            "lines": sorted(
                [line.category, line.line_type, f"{line.amount:.2f}", line.line_hash]
                for line in payslip.lines
            ),
        }

    def _compute_hash(self, data: dict[str, Any]) -> str:
        """Compute a deterministic hash of data."""
        json_str = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
