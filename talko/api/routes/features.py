"""Feature quota discovery.

GET /api/features/limits reports the anonymous caps (or UNLIMITED for
signed-in callers); the usage endpoints report what the caller has left.
"""

from fastapi import APIRouter, Depends

from talko.core.context import RequestContext, get_request_context
from talko.db.redis import get_usage_ledger
from talko.domain.features import ANONYMOUS_LIMITS, UNLIMITED, parse_feature
from talko.services.usage_ledger import UsageLedger

router = APIRouter()


@router.get("/limits")
async def get_limits(ctx: RequestContext = Depends(get_request_context)):
    if ctx.is_authenticated:
        limits = {feature.value: UNLIMITED for feature in ANONYMOUS_LIMITS}
    else:
        limits = {feature.value: limit for feature, limit in ANONYMOUS_LIMITS.items()}
    return {"success": True, "limits": limits}


@router.get("/usage")
async def get_usage_summary(
    ctx: RequestContext = Depends(get_request_context),
    ledger: UsageLedger = Depends(get_usage_ledger),
):
    usage = await ledger.usage_summary(ctx.identity, authenticated=ctx.is_authenticated)
    return {"success": True, "authenticated": ctx.is_authenticated, "usage": usage}


@router.get("/usage/{feature}")
async def get_feature_usage(
    feature: str,
    ctx: RequestContext = Depends(get_request_context),
    ledger: UsageLedger = Depends(get_usage_ledger),
):
    """Remaining invocations for one feature; 400 on an unknown feature name."""
    feature_type = parse_feature(feature)
    if ctx.is_authenticated:
        return {"success": True, "feature": feature, "remaining": UNLIMITED}

    remaining = await ledger.remaining(ctx.identity, feature_type)
    return {
        "success": True,
        "feature": feature,
        "remaining": remaining,
        "total": ANONYMOUS_LIMITS[feature_type],
    }
