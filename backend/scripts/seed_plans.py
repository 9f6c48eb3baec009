"""
Seed Subscription Plans Script

Creates or updates the default plan catalog. Plans are matched by name;
Stripe price ids come from the environment so test and live mode can be
seeded from the same script.

Usage:
    cd backend
    STRIPE_PRICE_BASIC=price_... STRIPE_PRICE_PRO=price_... python scripts/seed_plans.py
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from postgen.domain.subscription import UNLIMITED_POSTS
from postgen.infrastructure.db.database import get_session_context
from postgen.infrastructure.db.models import SubscriptionPlanModel

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# name, price (cents), monthly post limit, env var holding the Stripe price id
DEFAULT_PLANS = [
    ("Free", 0, 3, None),
    ("Basic", 990, 30, "STRIPE_PRICE_BASIC"),
    ("Pro", 2990, UNLIMITED_POSTS, "STRIPE_PRICE_PRO"),
]


async def seed_plans() -> None:
    async with get_session_context() as session:
        created = 0
        updated = 0

        for name, price, limit, price_env in DEFAULT_PLANS:
            stripe_price_id = os.environ.get(price_env) if price_env else None
            if price_env and not stripe_price_id:
                logger.warning(f"{price_env} not set; {name} cannot be purchased until it is")

            result = await session.execute(
                select(SubscriptionPlanModel).where(SubscriptionPlanModel.name == name)
            )
            plan = result.scalar_one_or_none()

            if plan is None:
                plan = SubscriptionPlanModel(name=name)
                created += 1
            else:
                updated += 1

            plan.price = price
            plan.monthly_post_limit = limit
            if stripe_price_id or price == 0:
                plan.stripe_price_id = stripe_price_id
            session.add(plan)
            logger.info(f"{name}: price={price}, limit={limit}, stripe_price_id={plan.stripe_price_id}")

        logger.info(f"Seeded plans: {created} created, {updated} updated")


if __name__ == "__main__":
    asyncio.run(seed_plans())
