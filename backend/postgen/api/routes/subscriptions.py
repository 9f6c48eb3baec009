"""
Subscription API Routes

Plan catalog, subscription status, checkout and free plan activation.
Errors are raised as PostGen exceptions and rendered by the app's
exception handlers.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Request

from postgen.api.dependencies import (
    CurrentUserDep,
    PlanRepoDep,
    SubscriptionServiceDep,
)
from postgen.domain.subscription import (
    CheckoutResponse,
    PlanResponse,
    PlanSelectionRequest,
    SubscriptionCheckResponse,
    SubscriptionResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Plan Catalog
# =============================================================================

@router.get("/plans", response_model=List[PlanResponse])
async def list_plans(plans: PlanRepoDep):
    """List all subscription plans, cheapest first."""
    return [PlanResponse.model_validate(plan) for plan in await plans.list_plans()]


# =============================================================================
# Subscription Status
# =============================================================================

@router.api_route(
    "/subscriptions/check",
    methods=["GET", "POST"],
    response_model=SubscriptionCheckResponse,
)
async def check_subscription(
    user: CurrentUserDep,
    service: SubscriptionServiceDep,
):
    """
    Get the current user's subscription status and post usage.

    Polled by the checkout success page until the webhook has activated
    the subscription.
    """
    result = await service.check_status(user)
    return result.to_response()


# =============================================================================
# Checkout
# =============================================================================

@router.post("/subscriptions/checkout", response_model=CheckoutResponse)
async def create_checkout_session(
    request: Request,
    user: CurrentUserDep,
    service: SubscriptionServiceDep,
    body: Optional[PlanSelectionRequest] = None,
):
    """
    Create a Stripe Checkout session for a paid plan.

    Return URLs point back to the calling origin.
    """
    plan_id = body.plan_id if body else None
    url = await service.create_checkout(
        user,
        plan_id,
        origin=request.headers.get("origin"),
    )
    return CheckoutResponse(url=url)


# =============================================================================
# Free Plan
# =============================================================================

@router.post("/subscriptions/free", response_model=SubscriptionResponse)
async def activate_free_plan(
    user: CurrentUserDep,
    service: SubscriptionServiceDep,
    body: Optional[PlanSelectionRequest] = None,
):
    """Activate a zero-price plan directly, without Stripe."""
    plan_id = body.plan_id if body else None
    subscription = await service.activate_free_plan(user, plan_id)
    return SubscriptionResponse.from_domain(subscription)
