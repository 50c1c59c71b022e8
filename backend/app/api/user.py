"""Current user's plan and quota."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from backend.app.api.auth import CurrentUser, get_current_user, get_optional_user
from backend.app.api.deps import get_quota_gate
from backend.app.quota import DEFAULT_PLAN, QuotaGate, QuotaResult

router = APIRouter(prefix="/api/user", tags=["user"])


class PlanResponse(BaseModel):
    plan: str


@router.get("/plan", response_model=PlanResponse)
async def get_plan(
    user: CurrentUser | None = Depends(get_optional_user),
    gate: QuotaGate = Depends(get_quota_gate),
) -> PlanResponse:
    """Return the caller's active plan id; anonymous callers are on the free plan."""
    if user is None:
        return PlanResponse(plan=DEFAULT_PLAN)
    plan = await run_in_threadpool(gate.get_plan, user.user_id)
    return PlanResponse(plan=plan)


@router.get("/quota", response_model=QuotaResult)
async def get_quota(
    current_user: CurrentUser = Depends(get_current_user),
    gate: QuotaGate = Depends(get_quota_gate),
) -> QuotaResult:
    return await gate.check_quota(current_user.user_id)
