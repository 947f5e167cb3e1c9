"""Payroll run, payslip, and payslip line models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from attendance_payroll.calculators.errors import StaleConfigurationError
from attendance_payroll.models.base import Base, TimestampMixin, utcnow

_RUN_STATUSES = "('DRAFT', 'COMPUTING', 'REVIEW', 'APPROVED', 'RELEASED', 'CANCELLED')"


class PayrollRun(Base, TimestampMixin):
    """One payroll computation over a pay period."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")

    # Configuration pinned at first computation
    ruleset_version: Mapped[str | None] = mapped_column(String)
    ruleset_fingerprint: Mapped[str | None] = mapped_column(String)
    engine_version: Mapped[str | None] = mapped_column(String)

    computed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[str | None] = mapped_column(String)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancel_reason: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint(f"status IN {_RUN_STATUSES}", name="payroll_run_status_check"),
        CheckConstraint("period_end >= period_start", name="payroll_run_dates_check"),
        CheckConstraint(
            "pay_frequency IN ('WEEKLY', 'SEMI_MONTHLY', 'MONTHLY')",
            name="payroll_run_frequency_check",
        ),
    )

    payslips: Mapped[list[Payslip]] = relationship(
        back_populates="payroll_run", cascade="all, delete-orphan"
    )
    issues: Mapped[list[PayrollRunIssue]] = relationship(
        back_populates="payroll_run", cascade="all, delete-orphan"
    )
    events: Mapped[list[PayrollRunEvent]] = relationship(
        back_populates="payroll_run", cascade="all, delete-orphan"
    )


class Payslip(Base, TimestampMixin):
    """Finalized pay statement for one employee in one run."""

    __tablename__ = "payslip"

    payslip_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"), nullable=False
    )
    employee_id: Mapped[str] = mapped_column(String, nullable=False)
    calculation_id: Mapped[UUID] = mapped_column(nullable=False)

    gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    taxable_income: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    employer_contributions: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    ytd_gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    ytd_taxable_income: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    ytd_tax_withheld: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    annualized_tax_due: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    inputs_fingerprint: Mapped[str] = mapped_column(String, nullable=False)
    rules_fingerprint: Mapped[str] = mapped_column(String, nullable=False)
    warnings: Mapped[list[Any] | None] = mapped_column(JSON)

    # Set on approval; once set the row and its lines are frozen
    snapshot_hash: Mapped[str | None] = mapped_column(String)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="payslip_run_employee_unique"),
    )

    payroll_run: Mapped[PayrollRun] = relationship(back_populates="payslips")
    lines: Mapped[list[PayslipLine]] = relationship(
        back_populates="payslip",
        cascade="all, delete-orphan",
        order_by="PayslipLine.sort_order",
    )


class PayslipLine(Base):
    """One itemized payslip line."""

    __tablename__ = "payslip_line"

    payslip_line_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payslip_id: Mapped[UUID] = mapped_column(
        ForeignKey("payslip.payslip_id", ondelete="CASCADE"), nullable=False
    )
    line_type: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))
    rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 6))
    multiplier: Mapped[Decimal | None] = mapped_column(Numeric(8, 4))
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    line_hash: Mapped[str] = mapped_column(String, nullable=False)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "line_type IN ('EARNING', 'DEDUCTION', 'EMPLOYER_CONTRIBUTION')",
            name="payslip_line_type_check",
        ),
        CheckConstraint("amount >= 0", name="payslip_line_amount_check"),
    )

    payslip: Mapped[Payslip] = relationship(back_populates="lines")


class PayrollRunIssue(Base, TimestampMixin):
    """Per-employee computation failure awaiting an operator fix."""

    __tablename__ = "payroll_run_issue"

    issue_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"), nullable=False
    )
    employee_id: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    work_date: Mapped[date | None] = mapped_column(Date)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    payroll_run: Mapped[PayrollRun] = relationship(back_populates="issues")


class PayrollRunEvent(Base, TimestampMixin):
    """Audit trail of run lifecycle actions."""

    __tablename__ = "payroll_run_event"

    event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[str] = mapped_column(String, nullable=False)
    from_status: Mapped[str | None] = mapped_column(String)
    to_status: Mapped[str | None] = mapped_column(String)
    actor: Mapped[str | None] = mapped_column(String)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    payroll_run: Mapped[PayrollRun] = relationship(back_populates="events")


def _locked_before_flush(obj: Payslip | PayslipLine) -> bool:
    """Whether the row was already locked in the database."""
    history = inspect(obj).attrs.locked_at.history
    previous = history.deleted or history.unchanged
    return bool(previous and previous[0] is not None)


@event.listens_for(Session, "before_flush")
def _reject_locked_payslip_changes(session: Session, flush_context: Any, instances: Any) -> None:
    """Refuse updates and deletes of payslip rows frozen by approval."""
    for obj in list(session.dirty) + list(session.deleted):
        if not isinstance(obj, (Payslip, PayslipLine)):
            continue
        if obj in session.dirty and not session.is_modified(obj):
            continue
        if _locked_before_flush(obj):
            raise StaleConfigurationError(
                getattr(obj, "payroll_run_id", None),
                "LOCKED",
                f"{type(obj).__name__} rows are frozen once the run is approved",
            )
