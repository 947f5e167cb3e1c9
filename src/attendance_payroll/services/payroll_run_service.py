"""Payroll run service - orchestrates computation and the run lifecycle."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attendance_payroll.calculators.engine import (
    EmployeePayrollInput,
    PayrollEngine,
    RunComputationResult,
)
from attendance_payroll.calculators.errors import (
    ConfigurationIntegrityError,
    PayrollComputationError,
)
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.rulesets import Ruleset, RulesetCatalog, validate_ruleset
from attendance_payroll.calculators.types import (
    CalendarEvent,
    PayFrequency,
    PayPeriodRange,
    PayslipResult,
)
from attendance_payroll.config import Settings, get_settings
from attendance_payroll.models import (
    PayrollRun,
    PayrollRunEvent,
    PayrollRunIssue,
    Payslip,
    PayslipLine,
)
from attendance_payroll.models.base import utcnow
from attendance_payroll.services.locking_service import LockingService, RunLockRegistry
from attendance_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

logger = logging.getLogger(__name__)


class PayrollRunNotFoundError(LookupError):
    def __init__(self, run_id: UUID):
        self.run_id = run_id
        super().__init__(f"Payroll run {run_id} not found")


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create_run: Open a DRAFT run over a pay period
    - compute_run: Compute every employee and move the run to REVIEW
    - recompute_employee: Re-trigger one employee after an upstream fix
    - approve_run: Lock payslips and transition to APPROVED
    - release_run: Verify locks and transition to RELEASED
    - cancel_run: Stop any in-flight computation and cancel the run

    Each public operation commits its own unit of work. Computation runs on
    worker threads outside the run lock so a cancel request can get in.
    """

    def __init__(
        self,
        session: AsyncSession,
        catalog: RulesetCatalog,
        settings: Settings | None = None,
        locks: RunLockRegistry | None = None,
    ):
        self.session = session
        self.catalog = catalog
        self.settings = settings or get_settings()
        self.policy = self.settings.payroll_policy()
        self.locks = locks or RunLockRegistry()
        self.locking_service = LockingService(session)

    # ===== Queries =====

    async def get_run(self, run_id: UUID, for_update: bool = False) -> PayrollRun | None:
        query = select(PayrollRun).where(PayrollRun.payroll_run_id == run_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def require_run(self, run_id: UUID, for_update: bool = False) -> PayrollRun:
        run = await self.get_run(run_id, for_update)
        if run is None:
            raise PayrollRunNotFoundError(run_id)
        return run

    async def list_runs(self, status: str | None = None, limit: int = 100) -> list[PayrollRun]:
        query = select(PayrollRun).order_by(PayrollRun.period_start.desc(), PayrollRun.name)
        if status:
            query = query.where(PayrollRun.status == status)
        result = await self.session.execute(query.limit(limit))
        return list(result.scalars().all())

    async def list_payslips(self, run_id: UUID) -> list[Payslip]:
        await self.require_run(run_id)
        result = await self.session.execute(
            select(Payslip)
            .where(Payslip.payroll_run_id == run_id)
            .options(selectinload(Payslip.lines))
            .order_by(Payslip.employee_id)
        )
        return list(result.scalars().all())

    async def get_payslip(self, run_id: UUID, employee_id: str) -> Payslip | None:
        result = await self.session.execute(
            select(Payslip)
            .where(Payslip.payroll_run_id == run_id, Payslip.employee_id == employee_id)
            .options(selectinload(Payslip.lines))
        )
        return result.scalar_one_or_none()

    async def list_issues(
        self, run_id: UUID, include_resolved: bool = False
    ) -> list[PayrollRunIssue]:
        await self.require_run(run_id)
        query = select(PayrollRunIssue).where(PayrollRunIssue.payroll_run_id == run_id)
        if not include_resolved:
            query = query.where(PayrollRunIssue.resolved_at.is_(None))
        result = await self.session.execute(
            query.order_by(PayrollRunIssue.employee_id, PayrollRunIssue.created_at)
        )
        return list(result.scalars().all())

    async def list_events(self, run_id: UUID) -> list[PayrollRunEvent]:
        result = await self.session.execute(
            select(PayrollRunEvent)
            .where(PayrollRunEvent.payroll_run_id == run_id)
            .order_by(PayrollRunEvent.created_at)
        )
        return list(result.scalars().all())

    async def count_payslips(self, run_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Payslip).where(Payslip.payroll_run_id == run_id)
        )
        return int(result.scalar_one())

    async def count_open_issues(self, run_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(PayrollRunIssue)
            .where(
                PayrollRunIssue.payroll_run_id == run_id,
                PayrollRunIssue.resolved_at.is_(None),
            )
        )
        return int(result.scalar_one())

    # ===== Lifecycle =====

    async def create_run(
        self,
        name: str,
        period_start: date,
        period_end: date,
        pay_frequency: PayFrequency = PayFrequency.SEMI_MONTHLY,
        actor: str | None = None,
    ) -> PayrollRun:
        """Open a DRAFT run. The ruleset is pinned at first computation."""
        if period_end < period_start:
            raise ValueError(f"Period end {period_end} is before start {period_start}")

        run = PayrollRun(
            name=name,
            period_start=period_start,
            period_end=period_end,
            pay_frequency=PayFrequency(pay_frequency).value,
            status=PayrollRunStatus.DRAFT.value,
        )
        self.session.add(run)
        await self.session.flush()
        await self._record_audit(run, "created", actor, to_status=run.status)
        await self.session.commit()
        logger.info(
            "Created payroll run %s for %s..%s", run.payroll_run_id, period_start, period_end
        )
        return run

    async def compute_run(
        self,
        run_id: UUID,
        employees: Sequence[EmployeePayrollInput],
        calendar_events: Sequence[CalendarEvent] = (),
        actor: str | None = None,
    ) -> RunComputationResult:
        """Compute every given employee and move the run to REVIEW.

        Per-employee failures become open issues on the run rather than
        aborting it. If the run is cancelled while the engine is working,
        the partial results are discarded and nothing is persisted.
        """
        async with self.locks.hold(run_id):
            run = await self.require_run(run_id, for_update=True)
            ruleset = await self._begin_computation(run, actor)
            cancel_event = self.locks.start_computation(run_id)

        try:
            engine = self._engine_for(ruleset)
            result = await asyncio.to_thread(
                engine.compute_run,
                self._period_for(run),
                employees,
                calendar_events,
                cancel_event,
            )

            async with self.locks.hold(run_id):
                await self.session.refresh(run, with_for_update=True)
                if result.cancelled or run.status == PayrollRunStatus.CANCELLED:
                    logger.info(
                        "Discarded results of cancelled payroll run %s (%d computed)",
                        run_id,
                        len(result.results),
                    )
                    result.cancelled = True
                    return result

                await self._store_results(run, result.results, result.errors)
                run.computed_at = utcnow()
                await self.transition_status(
                    run,
                    PayrollRunStatus.REVIEW,
                    actor,
                    details={
                        "payslips": len(result.results),
                        "errors": result.error_count,
                        "total_gross": str(result.total_gross),
                        "total_net": str(result.total_net),
                    },
                )
                await self.session.commit()
        finally:
            self.locks.finish_computation(run_id)

        if result.cancelled:
            self.locks.discard(run_id)
        return result

    async def recompute_employee(
        self,
        run_id: UUID,
        employee: EmployeePayrollInput,
        calendar_events: Sequence[CalendarEvent] = (),
        actor: str | None = None,
    ) -> RunComputationResult:
        """Re-trigger computation for one employee.

        Raises StaleConfigurationError once the run is APPROVED or RELEASED;
        existing payslip lines are left untouched.
        """
        async with self.locks.hold(run_id):
            run = await self.require_run(run_id, for_update=True)
            ruleset = await self._begin_computation(run, actor)
            cancel_event = self.locks.start_computation(run_id)
            try:
                engine = self._engine_for(ruleset)
                result = await asyncio.to_thread(
                    engine.compute_run,
                    self._period_for(run),
                    [employee],
                    calendar_events,
                    cancel_event,
                )
                await self._store_results(run, result.results, result.errors)
                run.computed_at = utcnow()
                await self.transition_status(
                    run,
                    PayrollRunStatus.REVIEW,
                    actor,
                    details={
                        "employee_id": employee.employee_id,
                        "errors": result.error_count,
                    },
                )
                await self.session.commit()
            finally:
                self.locks.finish_computation(run_id)

        logger.info(
            "Recomputed employee %s in payroll run %s (%s)",
            employee.employee_id,
            run_id,
            "failed" if result.error_count else "ok",
        )
        return result

    async def approve_run(self, run_id: UUID, actor: str | None = None) -> PayrollRun:
        """Approve a run, locking every payslip and line."""
        return await self.transition(run_id, PayrollRunStatus.APPROVED, actor)

    async def release_run(self, run_id: UUID, actor: str | None = None) -> PayrollRun:
        """Release an approved run after verifying its locks."""
        return await self.transition(run_id, PayrollRunStatus.RELEASED, actor)

    async def cancel_run(
        self,
        run_id: UUID,
        actor: str | None = None,
        reason: str | None = None,
    ) -> PayrollRun:
        """Cancel a run, signalling any in-flight computation to stop."""
        if self.locks.request_cancel(run_id):
            logger.info("Cancellation requested for in-flight payroll run %s", run_id)
        return await self.transition(run_id, PayrollRunStatus.CANCELLED, actor, reason)

    async def transition(
        self,
        run_id: UUID,
        to_status: str,
        actor: str | None = None,
        reason: str | None = None,
    ) -> PayrollRun:
        async with self.locks.hold(run_id):
            run = await self.require_run(run_id, for_update=True)
            await self.transition_status(run, to_status, actor, reason)
            await self.session.commit()
        if PayrollRunStateMachine.is_terminal(run.status):
            self.locks.discard(run_id)
        return run

    async def transition_status(
        self,
        run: PayrollRun,
        to_status: str,
        actor: str | None = None,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> PayrollRun:
        """Transition a run to a new status.

        Handles all side effects of transitions:
        - APPROVED: requires payslips and no open issues, locks payslips
        - RELEASED: requires intact locks, sets released_at
        - CANCELLED: sets cancelled_at and the reason

        Raises InvalidTransitionError if transition is not allowed.
        """
        from_status = run.status
        run_id = run.payroll_run_id

        payslip_count = open_issue_count = 0
        if to_status == PayrollRunStatus.APPROVED:
            payslip_count = await self.count_payslips(run_id)
            open_issue_count = await self.count_open_issues(run_id)

        errors = PayrollRunStateMachine.validate_run_for_transition(
            run, to_status, payslip_count, open_issue_count
        )
        if errors:
            raise InvalidTransitionError(from_status, to_status, "; ".join(errors))

        if to_status == PayrollRunStatus.APPROVED:
            locked = await self.locking_service.lock_payslips_for_run(run)
            run.approved_at = utcnow()
            run.approved_by = actor
            details = {**(details or {}), "locked_payslips": locked}

        elif to_status == PayrollRunStatus.RELEASED:
            lock_errors = await self.locking_service.verify_locks_intact(run)
            if lock_errors:
                raise InvalidTransitionError(
                    from_status,
                    to_status,
                    f"Lock verification failed: {'; '.join(lock_errors)}",
                )
            run.released_at = utcnow()

        elif to_status == PayrollRunStatus.CANCELLED:
            run.cancelled_at = utcnow()
            run.cancel_reason = reason

        run.status = PayrollRunStatus(to_status).value

        if reason:
            details = {**(details or {}), "reason": reason}
        await self._record_audit(
            run,
            f"status_change:{from_status}:{run.status}",
            actor,
            from_status=from_status,
            to_status=run.status,
            details=details,
        )
        logger.info("Payroll run %s: %s -> %s", run_id, from_status, run.status)
        return run

    # ===== Internals =====

    async def _begin_computation(self, run: PayrollRun, actor: str | None) -> Ruleset:
        """Check the run may compute, pin its ruleset and enter COMPUTING."""
        PayrollRunStateMachine.ensure_recomputable(run.payroll_run_id, run.status)
        if self.locks.is_computing(run.payroll_run_id):
            raise InvalidTransitionError(
                run.status, PayrollRunStatus.COMPUTING, "computation already in progress"
            )

        ruleset = self._ruleset_for(run)
        problems = validate_ruleset(ruleset)
        if problems:
            raise ConfigurationIntegrityError(
                f"Ruleset {ruleset.version} failed self-check: {'; '.join(problems)}"
            )

        if run.ruleset_version is None:
            run.ruleset_version = ruleset.version
            run.ruleset_fingerprint = ruleset.fingerprint
            run.engine_version = self.settings.engine_version

        if run.status != PayrollRunStatus.COMPUTING:
            await self.transition_status(run, PayrollRunStatus.COMPUTING, actor)
        await self.session.commit()
        return ruleset

    def _ruleset_for(self, run: PayrollRun) -> Ruleset:
        if run.ruleset_version:
            ruleset = self.catalog.get(run.ruleset_version)
            if run.ruleset_fingerprint and ruleset.fingerprint != run.ruleset_fingerprint:
                raise ConfigurationIntegrityError(
                    f"Ruleset {ruleset.version} changed since the run was first computed"
                )
            return ruleset
        return self.catalog.effective_on(run.period_end)

    def _engine_for(self, ruleset: Ruleset) -> PayrollEngine:
        return PayrollEngine(
            ruleset,
            self.policy,
            engine_version=self.settings.engine_version,
            max_workers=self.settings.worker_count,
        )

    @staticmethod
    def _period_for(run: PayrollRun) -> PayPeriodRange:
        return PayPeriodRange(run.period_start, run.period_end, PayFrequency(run.pay_frequency))

    async def _store_results(
        self,
        run: PayrollRun,
        results: dict[str, PayslipResult],
        errors: dict[str, PayrollComputationError],
    ) -> None:
        """Replace payslips and issues of every employee in this batch."""
        employee_ids = set(results) | set(errors)
        if not employee_ids:
            return
        run_id = run.payroll_run_id
        now = utcnow()

        existing = await self.session.execute(
            select(Payslip)
            .where(Payslip.payroll_run_id == run_id, Payslip.employee_id.in_(employee_ids))
            .options(selectinload(Payslip.lines))
        )
        for payslip in existing.scalars().all():
            await self.session.delete(payslip)

        open_issues = await self.session.execute(
            select(PayrollRunIssue).where(
                PayrollRunIssue.payroll_run_id == run_id,
                PayrollRunIssue.employee_id.in_(employee_ids),
                PayrollRunIssue.resolved_at.is_(None),
            )
        )
        for issue in open_issues.scalars().all():
            issue.resolved_at = now

        # Deletes must reach the database before the replacement rows
        await self.session.flush()

        for employee_id in sorted(results):
            self.session.add(self._payslip_from_result(run_id, results[employee_id]))
        for employee_id in sorted(errors):
            exc = errors[employee_id]
            self.session.add(
                PayrollRunIssue(
                    payroll_run_id=run_id,
                    employee_id=employee_id,
                    code=exc.code,
                    work_date=exc.work_date,
                    message=str(exc),
                )
            )
        await self.session.flush()

    @staticmethod
    def _payslip_from_result(run_id: UUID, result: PayslipResult) -> Payslip:
        return Payslip(
            payroll_run_id=run_id,
            employee_id=result.employee_id,
            calculation_id=result.calculation_id,
            gross_pay=result.gross_pay,
            total_deductions=result.total_deductions,
            net_pay=result.net_pay,
            taxable_income=result.taxable_income,
            employer_contributions=result.employer_contributions,
            ytd_gross_pay=result.ytd_gross_pay,
            ytd_taxable_income=result.ytd_taxable_income,
            ytd_tax_withheld=result.ytd_tax_withheld,
            annualized_tax_due=result.annualized_tax_due,
            inputs_fingerprint=result.inputs_fingerprint,
            rules_fingerprint=result.rules_fingerprint,
            warnings=list(result.warnings) or None,
            lines=[
                PayslipLine(
                    line_type=line.line_type.value,
                    category=line.category.value,
                    description=line.description,
                    quantity=line.quantity,
                    rate=line.rate,
                    multiplier=line.multiplier,
                    amount=line.amount,
                    sort_order=line.sort_order,
                    line_hash=LineItemBuilder.compute_line_hash(line),
                )
                for line in result.lines
            ],
        )

    async def _record_audit(
        self,
        run: PayrollRun,
        action: str,
        actor: str | None = None,
        from_status: str | None = None,
        to_status: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit event for a run lifecycle action."""
        self.session.add(
            PayrollRunEvent(
                payroll_run_id=run.payroll_run_id,
                action=action,
                from_status=from_status,
                to_status=to_status,
                actor=actor,
                details=details,
            )
        )
