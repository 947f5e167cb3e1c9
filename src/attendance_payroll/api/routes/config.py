"""Configuration self-check endpoint."""

from fastapi import APIRouter

from attendance_payroll.api.dependencies import Catalog
from attendance_payroll.api.schemas import SelfCheckResponse

router = APIRouter(prefix="/config", tags=["config"])


@router.get("/self-check", response_model=SelfCheckResponse)
async def self_check(catalog: Catalog) -> SelfCheckResponse:
    """Validate every published ruleset (multiplier totality, bracket contiguity)."""
    problems = catalog.self_check()
    return SelfCheckResponse(
        ok=not problems,
        rulesets=[r.version for r in catalog.rulesets],
        problems=problems,
    )
