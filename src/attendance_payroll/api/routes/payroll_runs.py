"""Payroll run API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from attendance_payroll.api.dependencies import RunService
from attendance_payroll.api.schemas import (
    ComputeRequest,
    ComputeResponse,
    ErrorResponse,
    PayrollRunCreate,
    PayrollRunEventResponse,
    PayrollRunIssueResponse,
    PayrollRunListResponse,
    PayrollRunResponse,
    PayslipResponse,
    RecomputeRequest,
    TransitionRequest,
)
from attendance_payroll.calculators.engine import RunComputationResult
from attendance_payroll.models import PayrollRun

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])

RunId = Annotated[UUID, Path()]


def _compute_response(run: PayrollRun, result: RunComputationResult) -> ComputeResponse:
    return ComputeResponse(
        run=PayrollRunResponse.model_validate(run),
        computed=len(result.results),
        errors=result.error_count,
        skipped=result.skipped,
        cancelled=result.cancelled,
        total_gross=result.total_gross,
        total_net=result.total_net,
    )


# ============================================================================
# Payroll run CRUD
# ============================================================================


@router.post(
    "",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_payroll_run(service: RunService, payload: PayrollRunCreate) -> PayrollRunResponse:
    """Create a new payroll run in DRAFT status."""
    if payload.period_end < payload.period_start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="period_end must not be before period_start",
        )
    run = await service.create_run(
        payload.name,
        payload.period_start,
        payload.period_end,
        payload.pay_frequency,
        payload.actor,
    )
    return PayrollRunResponse.model_validate(run)


@router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    service: RunService,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> PayrollRunListResponse:
    """List payroll runs, newest period first."""
    runs = await service.list_runs(status_filter, limit)
    return PayrollRunListResponse(
        items=[PayrollRunResponse.model_validate(r) for r in runs],
        total=len(runs),
    )


@router.get(
    "/{run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(service: RunService, run_id: RunId) -> PayrollRunResponse:
    """Get a specific payroll run by ID."""
    run = await service.require_run(run_id)
    return PayrollRunResponse.model_validate(run)


# ============================================================================
# Computation
# ============================================================================


@router.post(
    "/{run_id}/compute",
    response_model=ComputeResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def compute_payroll_run(
    service: RunService,
    run_id: RunId,
    payload: ComputeRequest,
) -> ComputeResponse:
    """Compute every employee in the request and move the run to REVIEW."""
    employees = [e.to_domain() for e in payload.employees]
    result = await service.compute_run(run_id, employees, payload.calendar(), payload.actor)
    run = await service.require_run(run_id)
    return _compute_response(run, result)


@router.post(
    "/{run_id}/employees/{employee_id}/recompute",
    response_model=ComputeResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def recompute_employee(
    service: RunService,
    run_id: RunId,
    employee_id: Annotated[str, Path()],
    payload: RecomputeRequest,
) -> ComputeResponse:
    """Re-trigger computation for one employee after an upstream fix."""
    if payload.employee.employee_id != employee_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee id in path and body differ",
        )
    result = await service.recompute_employee(
        run_id, payload.employee.to_domain(), payload.calendar(), payload.actor
    )
    run = await service.require_run(run_id)
    return _compute_response(run, result)


# ============================================================================
# Lifecycle
# ============================================================================


@router.post(
    "/{run_id}/approve",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_payroll_run(
    service: RunService,
    run_id: RunId,
    payload: TransitionRequest | None = None,
) -> PayrollRunResponse:
    """Approve a run in REVIEW, locking its payslips."""
    actor = payload.actor if payload else None
    run = await service.approve_run(run_id, actor)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{run_id}/release",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def release_payroll_run(
    service: RunService,
    run_id: RunId,
    payload: TransitionRequest | None = None,
) -> PayrollRunResponse:
    """Release an approved run."""
    actor = payload.actor if payload else None
    run = await service.release_run(run_id, actor)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{run_id}/cancel",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_payroll_run(
    service: RunService,
    run_id: RunId,
    payload: TransitionRequest | None = None,
) -> PayrollRunResponse:
    """Cancel a run, stopping any in-flight computation."""
    run = await service.cancel_run(
        run_id,
        payload.actor if payload else None,
        payload.reason if payload else None,
    )
    return PayrollRunResponse.model_validate(run)


# ============================================================================
# Results
# ============================================================================


@router.get(
    "/{run_id}/payslips",
    response_model=list[PayslipResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_payslips(service: RunService, run_id: RunId) -> list[PayslipResponse]:
    """List payslips with their lines, ordered by employee."""
    payslips = await service.list_payslips(run_id)
    return [PayslipResponse.model_validate(p) for p in payslips]


@router.get(
    "/{run_id}/payslips/{employee_id}",
    response_model=PayslipResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payslip(
    service: RunService,
    run_id: RunId,
    employee_id: Annotated[str, Path()],
) -> PayslipResponse:
    payslip = await service.get_payslip(run_id, employee_id)
    if payslip is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payslip not found",
        )
    return PayslipResponse.model_validate(payslip)


@router.get(
    "/{run_id}/issues",
    response_model=list[PayrollRunIssueResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_issues(
    service: RunService,
    run_id: RunId,
    include_resolved: bool = False,
) -> list[PayrollRunIssueResponse]:
    """List per-employee computation errors blocking approval."""
    issues = await service.list_issues(run_id, include_resolved)
    return [PayrollRunIssueResponse.model_validate(i) for i in issues]


@router.get(
    "/{run_id}/events",
    response_model=list[PayrollRunEventResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_events(service: RunService, run_id: RunId) -> list[PayrollRunEventResponse]:
    """Audit trail of lifecycle actions on the run."""
    await service.require_run(run_id)
    events = await service.list_events(run_id)
    return [PayrollRunEventResponse.model_validate(e) for e in events]
