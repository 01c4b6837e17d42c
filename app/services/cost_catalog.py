"""Cost Catalog - Service prices and purchasable plans"""
import logging
from decimal import Decimal
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ServiceCost, SubscriptionPlan
from app.services.exceptions import ServiceNotConfigured, PlanNotFound

logger = logging.getLogger(__name__)


DEFAULT_SERVICE_COSTS: Dict[str, int] = {
    "ai_chat": 1,
    "text_interview": 5,
    "voice_interview": 10,
    "video_interview": 15,
    "group_practice": 3,
    "rag_query": 1,
}

DEFAULT_PLANS = [
    {"name": "Starter", "tokens": 200, "price": Decimal("9.99"), "duration_days": 0, "is_recurring": False},
    {"name": "Pro Monthly", "tokens": 500, "price": Decimal("19.99"), "duration_days": 30, "is_recurring": True},
    {"name": "Ultra", "tokens": 2000, "price": Decimal("49.99"), "duration_days": 0, "is_recurring": False},
]


class CostCatalog:
    """Read access to token prices and plans; only seeding writes"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_cost(self, service_name: str) -> int:
        """Token cost of a service; raises ServiceNotConfigured if unknown"""
        result = await self.db.execute(
            select(ServiceCost.cost).where(ServiceCost.service_name == service_name)
        )
        cost = result.scalar_one_or_none()
        if cost is None:
            raise ServiceNotConfigured(service_name)
        return cost

    async def list_costs(self) -> Dict[str, int]:
        result = await self.db.execute(select(ServiceCost).order_by(ServiceCost.service_name))
        return {c.service_name: c.cost for c in result.scalars().all()}

    async def get_all_plans(self) -> List[SubscriptionPlan]:
        """All plans, cheapest first"""
        result = await self.db.execute(
            select(SubscriptionPlan).order_by(SubscriptionPlan.price, SubscriptionPlan.name)
        )
        return list(result.scalars().all())

    async def get_plan(self, plan_id: str) -> SubscriptionPlan:
        result = await self.db.execute(select(SubscriptionPlan).where(SubscriptionPlan.id == plan_id))
        plan = result.scalar_one_or_none()
        if plan is None:
            raise PlanNotFound(plan_id)
        return plan

    async def seed_defaults(self) -> None:
        """
        Upsert the default service costs and insert missing default plans.
        Safe to run on every startup.
        """
        existing_costs = await self.list_costs()
        for service_name, cost in DEFAULT_SERVICE_COSTS.items():
            if service_name not in existing_costs:
                self.db.add(ServiceCost(service_name=service_name, cost=cost))
            elif existing_costs[service_name] != cost:
                row = await self.db.get(ServiceCost, service_name)
                row.cost = cost

        result = await self.db.execute(select(SubscriptionPlan.name))
        existing_plans = set(result.scalars().all())
        for plan_data in DEFAULT_PLANS:
            if plan_data["name"] not in existing_plans:
                self.db.add(SubscriptionPlan(**plan_data))

        await self.db.commit()
        logger.info("Catalog seeded: %d services, %d plans", len(DEFAULT_SERVICE_COSTS), len(DEFAULT_PLANS))
