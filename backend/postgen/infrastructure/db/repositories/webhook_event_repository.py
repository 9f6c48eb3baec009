"""
Processed Webhook Event Repository

DB-backed ledger of Stripe events whose handlers completed (survives
restarts and is shared by all instances).
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from postgen.infrastructure.db.models.webhook_event import ProcessedWebhookEventModel
from postgen.infrastructure.db.repositories.base_repository import BaseRepository


class WebhookEventRepository(BaseRepository[ProcessedWebhookEventModel]):

    def __init__(self, session: AsyncSession):
        super().__init__(ProcessedWebhookEventModel, session)

    async def is_processed(self, event_id: str) -> bool:
        """Check if a webhook event has already been processed."""
        result = await self.session.execute(
            text("SELECT 1 FROM processed_webhook_events WHERE event_id = :eid"),
            {"eid": event_id},
        )
        return result.scalar_one_or_none() is not None

    async def mark_processed(self, event_id: str, event_type: str) -> None:
        """Record a processed webhook event."""
        await self.session.execute(
            text(
                "INSERT INTO processed_webhook_events (event_id, event_type) "
                "VALUES (:eid, :etype) ON CONFLICT (event_id) DO NOTHING"
            ),
            {"eid": event_id, "etype": event_type},
        )
