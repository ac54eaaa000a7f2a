"""Feature access gating for anonymous and authenticated callers.

Resolution logic:
1. Authenticated callers are always allowed; nothing is counted
2. Features with an anonymous limit of 0 require login
3. Otherwise one slot is taken from the usage ledger, or the call is denied
   with the current usage and a retry hint
4. Every allowed call appends an activity record after the response
"""

import structlog
from fastapi import BackgroundTasks, Depends, Request

from talko.core.context import RequestContext, get_request_context, mirror_usage
from talko.core.exceptions import FeatureLimitError, LoginRequiredError
from talko.db.redis import get_usage_ledger
from talko.domain.features import UNLIMITED, AccessDecision, FeatureType, anonymous_limit
from talko.services.activity_service import record_activity
from talko.services.usage_ledger import UsageLedger

logger = structlog.get_logger(__name__)


async def check_access(feature: FeatureType, ctx: RequestContext, ledger: UsageLedger) -> AccessDecision:
    """Decide whether ``ctx`` may invoke ``feature`` and consume a slot if so."""
    if ctx.is_authenticated:
        return AccessDecision(
            allowed=True,
            feature=feature,
            limit=UNLIMITED,
            usage=0,
            remaining=UNLIMITED,
        )

    limit = anonymous_limit(feature)
    if limit == 0:
        return AccessDecision(
            allowed=False,
            feature=feature,
            limit=0,
            usage=0,
            remaining=0,
            login_required=True,
        )

    allowed, usage = await ledger.consume(ctx.identity, feature, limit)
    if not allowed:
        return AccessDecision(
            allowed=False,
            feature=feature,
            limit=limit,
            usage=usage,
            remaining=0,
            retry_after=ledger.retry_after(),
        )

    return AccessDecision(
        allowed=True,
        feature=feature,
        limit=limit,
        usage=usage,
        remaining=max(0, limit - usage),
    )


class FeatureAccess:
    """Request-bound gate for one feature.

    Handlers call ``consume()`` once their input has validated, so malformed
    requests never cost the caller a slot.
    """

    def __init__(
        self,
        feature: FeatureType,
        request: Request,
        background_tasks: BackgroundTasks,
        ctx: RequestContext,
        ledger: UsageLedger,
    ):
        self.feature = feature
        self.request = request
        self.background_tasks = background_tasks
        self.ctx = ctx
        self.ledger = ledger
        self.resource_type: str | None = None
        self.resource_id: str | None = None

    def link_resource(self, resource_type: str, resource_id: str | None) -> None:
        """Attach the record this call produced to its activity entry."""
        if resource_id is not None:
            self.resource_type = resource_type
            self.resource_id = resource_id

    async def _record(self) -> None:
        # Runs after the response, once the handler has linked its resource
        await record_activity(
            self.feature,
            user_id=self.ctx.user_id,
            session_id=self.ctx.session_id,
            resource_id=self.resource_id,
            resource_type=self.resource_type,
        )

    async def consume(self) -> RequestContext:
        """Take a slot or raise LoginRequiredError / FeatureLimitError (both 403)."""
        ctx = self.ctx
        decision = await check_access(self.feature, ctx, self.ledger)

        if not decision.allowed:
            logger.info(
                "feature_denied",
                feature=self.feature.value,
                identity=ctx.identity,
                login_required=decision.login_required,
                usage=decision.usage,
                limit=decision.limit,
            )
            if decision.login_required:
                raise LoginRequiredError(self.feature.value)
            raise FeatureLimitError(self.feature.value, decision.limit, decision.usage, decision.retry_after)

        if not ctx.is_authenticated:
            mirror_usage(self.request, self.feature.value, decision.usage)

        self.background_tasks.add_task(self._record)
        return ctx


def require_feature(feature: FeatureType):
    """Create a FastAPI dependency yielding a FeatureAccess for ``feature``.

    Usage:
        @router.post("/send")
        async def send(body: Body, access: FeatureAccess = Depends(require_feature(FeatureType.CHAT))):
            ctx = await access.consume()
            ...
    """
    async def dependency(
        request: Request,
        background_tasks: BackgroundTasks,
        ctx: RequestContext = Depends(get_request_context),
        ledger: UsageLedger = Depends(get_usage_ledger),
    ) -> FeatureAccess:
        return FeatureAccess(feature, request, background_tasks, ctx, ledger)

    return dependency
