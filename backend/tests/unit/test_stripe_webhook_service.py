"""
Unit tests for the Stripe webhook reconciler.

Drives the subscription state machine with event payloads shaped like
Stripe's, over in-memory repositories.
"""

from datetime import timedelta

import pytest

from postgen.domain.subscription import Subscription, utcnow
from postgen.infrastructure.exceptions import ProcessorError
from postgen.infrastructure.services.stripe_webhook_service import (
    StripeWebhookProcessor,
    WebhookOutcome,
)


@pytest.fixture
def processor(subscription_repo, event_repo, mock_stripe_service):
    return StripeWebhookProcessor(
        subscriptions=subscription_repo,
        events=event_repo,
        stripe_service=mock_stripe_service,
    )


def _event(event_type: str, obj: dict, event_id: str = "evt_1") -> dict:
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def _checkout_session(user_id: str, plan_id: str, **overrides) -> dict:
    session = {
        "id": "cs_test",
        "object": "checkout.session",
        "customer": "cus_test",
        "subscription": "sub_test",
        "metadata": {"user_id": user_id, "plan_id": plan_id},
    }
    session.update(overrides)
    return session


def _stripe_subscription(user_id=None, status="active", **overrides) -> dict:
    start = int(utcnow().timestamp())
    obj = {
        "id": "sub_test",
        "object": "subscription",
        "status": status,
        "customer": "cus_test",
        "cancel_at_period_end": False,
        "items": {"data": [{
            "current_period_start": start,
            "current_period_end": start + 31 * 86400,
        }]},
        "metadata": {"user_id": user_id} if user_id else {},
    }
    obj.update(overrides)
    return obj


async def _seed_pending(subscription_repo, user_id, plan):
    now = utcnow()
    await subscription_repo.upsert(Subscription(
        user_id=user_id,
        subscription_plan_id=plan.id,
        status="incomplete",
        stripe_customer_id="cus_test",
        current_period_start=now,
        current_period_end=now + timedelta(days=30),
    ))


# =============================================================================
# checkout.session.completed
# =============================================================================

class TestCheckoutCompleted:

    async def test_activates_pending_subscription(
        self, processor, subscription_repo, event_repo, mock_stripe_service,
        processor_subscription, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        snapshot = processor_subscription()
        mock_stripe_service.retrieve_subscription.return_value = snapshot

        outcome = await processor.process(
            _event("checkout.session.completed", _checkout_session(mock_user_id, basic_plan.id))
        )

        assert outcome is WebhookOutcome.PROCESSED
        row = subscription_repo.rows[mock_user_id]
        assert row.status == "active"
        assert row.stripe_subscription_id == "sub_test"
        assert row.stripe_customer_id == "cus_test"
        assert row.current_period_start == snapshot.current_period_start
        assert row.current_period_end == snapshot.current_period_end
        assert "evt_1" in event_repo.processed

    async def test_creates_row_when_pending_write_was_lost(
        self, processor, subscription_repo, mock_stripe_service,
        processor_subscription, pro_plan, mock_user_id,
    ):
        mock_stripe_service.retrieve_subscription.return_value = processor_subscription()

        await processor.process(
            _event("checkout.session.completed", _checkout_session(mock_user_id, pro_plan.id))
        )

        row = await subscription_repo.get_active_by_user_id(mock_user_id)
        assert row is not None
        assert row.plan.id == pro_plan.id

    async def test_snapshot_unavailable_uses_provisional_period(
        self, processor, subscription_repo, mock_stripe_service, basic_plan, mock_user_id,
    ):
        mock_stripe_service.retrieve_subscription.side_effect = ProcessorError("down")

        outcome = await processor.process(
            _event("checkout.session.completed", _checkout_session(mock_user_id, basic_plan.id))
        )

        assert outcome is WebhookOutcome.PROCESSED
        row = subscription_repo.rows[mock_user_id]
        assert row.status == "active"
        assert row.current_period_end - row.current_period_start == timedelta(days=30)

    @pytest.mark.parametrize("overrides", [
        {"subscription": None},
        {"metadata": {}},
        {"metadata": {"user_id": "11111111-1111-1111-1111-111111111111"}},
    ])
    async def test_missing_references_are_skipped(
        self, processor, subscription_repo, mock_stripe_service, basic_plan, mock_user_id, overrides,
    ):
        session = _checkout_session(mock_user_id, basic_plan.id, **overrides)

        outcome = await processor.process(_event("checkout.session.completed", session))

        assert outcome is WebhookOutcome.PROCESSED
        assert subscription_repo.rows == {}
        mock_stripe_service.retrieve_subscription.assert_not_called()


# =============================================================================
# invoice.payment_succeeded
# =============================================================================

class TestInvoicePaymentSucceeded:

    async def test_refreshes_period_by_user_metadata(
        self, processor, subscription_repo, mock_stripe_service,
        processor_subscription, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        snapshot = processor_subscription()
        mock_stripe_service.retrieve_subscription.return_value = snapshot

        await processor.process(
            _event("invoice.payment_succeeded", {"id": "in_1", "subscription": "sub_test"})
        )

        row = subscription_repo.rows[mock_user_id]
        assert row.status == "active"
        assert row.stripe_subscription_id == "sub_test"
        assert row.current_period_end == snapshot.current_period_end

    async def test_parent_reference_without_metadata_matches_by_subscription_id(
        self, processor, subscription_repo, mock_stripe_service,
        processor_subscription, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        await subscription_repo.update_by_user_id(
            mock_user_id, {"stripe_subscription_id": "sub_test"}
        )
        mock_stripe_service.retrieve_subscription.return_value = processor_subscription(
            user_id=None, status="past_due"
        )
        invoice = {
            "id": "in_2",
            "subscription": None,
            "parent": {"subscription_details": {"subscription": "sub_test"}},
        }

        outcome = await processor.process(_event("invoice.payment_succeeded", invoice))

        assert outcome is WebhookOutcome.PROCESSED
        mock_stripe_service.retrieve_subscription.assert_awaited_once_with("sub_test")
        assert subscription_repo.rows[mock_user_id].status == "past_due"

    async def test_invoice_without_subscription(self, processor, mock_stripe_service):
        outcome = await processor.process(
            _event("invoice.payment_succeeded", {"id": "in_3", "subscription": None})
        )

        assert outcome is WebhookOutcome.PROCESSED
        mock_stripe_service.retrieve_subscription.assert_not_called()

    async def test_processor_failure_is_reported_not_raised(
        self, processor, event_repo, mock_stripe_service,
    ):
        mock_stripe_service.retrieve_subscription.side_effect = ProcessorError("down")

        outcome = await processor.process(
            _event("invoice.payment_succeeded", {"id": "in_4", "subscription": "sub_test"})
        )

        assert outcome is WebhookOutcome.FAILED
        assert "evt_1" not in event_repo.processed


# =============================================================================
# customer.subscription.updated / deleted
# =============================================================================

class TestSubscriptionLifecycle:

    async def test_cancel_at_period_end_keeps_access(
        self, processor, subscription_repo, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        await processor.process(_event(
            "customer.subscription.updated",
            _stripe_subscription(mock_user_id, cancel_at_period_end=True),
        ))

        row = await subscription_repo.get_active_by_user_id(mock_user_id)
        assert row is not None
        assert row.cancel_at_period_end is True

    async def test_updated_without_metadata_matches_by_reference(
        self, processor, subscription_repo, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        await subscription_repo.update_by_user_id(
            mock_user_id, {"stripe_subscription_id": "sub_test", "status": "active"}
        )

        await processor.process(_event(
            "customer.subscription.updated",
            _stripe_subscription(status="unpaid"),
        ))

        assert subscription_repo.rows[mock_user_id].status == "unpaid"

    async def test_deleted_marks_canceled(
        self, processor, subscription_repo, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        await subscription_repo.update_by_user_id(
            mock_user_id, {"stripe_subscription_id": "sub_test", "status": "active"}
        )

        outcome = await processor.process(_event(
            "customer.subscription.deleted",
            _stripe_subscription(mock_user_id, status="canceled"),
        ))

        assert outcome is WebhookOutcome.PROCESSED
        assert subscription_repo.rows[mock_user_id].status == "canceled"
        assert await subscription_repo.get_active_by_user_id(mock_user_id) is None

    async def test_deletion_of_superseded_subscription_is_ignored(
        self, processor, subscription_repo, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        await subscription_repo.update_by_user_id(
            mock_user_id, {"stripe_subscription_id": "sub_new", "status": "active"}
        )

        await processor.process(_event(
            "customer.subscription.deleted",
            _stripe_subscription(mock_user_id, status="canceled", id="sub_old"),
        ))

        row = subscription_repo.rows[mock_user_id]
        assert row.status == "active"
        assert row.stripe_subscription_id == "sub_new"

    async def test_old_subscription_update_then_delete_keeps_successor(
        self, processor, subscription_repo, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        await subscription_repo.update_by_user_id(
            mock_user_id, {"stripe_subscription_id": "sub_new", "status": "active"}
        )

        updated = await processor.process(_event(
            "customer.subscription.updated",
            _stripe_subscription(mock_user_id, id="sub_old", cancel_at_period_end=True),
            event_id="evt_update_old",
        ))
        deleted = await processor.process(_event(
            "customer.subscription.deleted",
            _stripe_subscription(mock_user_id, status="canceled", id="sub_old"),
            event_id="evt_delete_old",
        ))

        assert updated is WebhookOutcome.PROCESSED
        assert deleted is WebhookOutcome.PROCESSED
        row = subscription_repo.rows[mock_user_id]
        assert row.status == "active"
        assert row.stripe_subscription_id == "sub_new"
        assert row.cancel_at_period_end is False

    async def test_invoice_for_superseded_subscription_is_ignored(
        self, processor, subscription_repo, mock_stripe_service,
        processor_subscription, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        await subscription_repo.update_by_user_id(
            mock_user_id, {"stripe_subscription_id": "sub_new", "status": "active"}
        )
        mock_stripe_service.retrieve_subscription.return_value = processor_subscription(
            subscription_id="sub_old", status="past_due"
        )

        await processor.process(
            _event("invoice.payment_succeeded", {"id": "in_old", "subscription": "sub_old"})
        )

        row = subscription_repo.rows[mock_user_id]
        assert row.status == "active"
        assert row.stripe_subscription_id == "sub_new"

    async def test_unknown_row_is_not_an_error(self, processor, subscription_repo):
        outcome = await processor.process(_event(
            "customer.subscription.deleted",
            _stripe_subscription(status="canceled", id="sub_unknown"),
        ))

        assert outcome is WebhookOutcome.PROCESSED
        assert subscription_repo.rows == {}


# =============================================================================
# Delivery semantics
# =============================================================================

class TestDelivery:

    async def test_duplicate_event_is_not_reprocessed(
        self, processor, subscription_repo, mock_stripe_service,
        processor_subscription, basic_plan, mock_user_id,
    ):
        mock_stripe_service.retrieve_subscription.return_value = processor_subscription()
        event = _event("checkout.session.completed", _checkout_session(mock_user_id, basic_plan.id))

        first = await processor.process(event)
        second = await processor.process(event)

        assert first is WebhookOutcome.PROCESSED
        assert second is WebhookOutcome.DUPLICATE
        assert len(subscription_repo.upsert_calls) == 1

    async def test_replay_with_new_event_id_is_idempotent(
        self, processor, subscription_repo, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        payload = _stripe_subscription(mock_user_id, cancel_at_period_end=True)

        await processor.process(_event("customer.subscription.updated", payload, "evt_a"))
        first = subscription_repo.rows[mock_user_id].model_dump(exclude={"updated_at"})
        await processor.process(_event("customer.subscription.updated", payload, "evt_b"))
        second = subscription_repo.rows[mock_user_id].model_dump(exclude={"updated_at"})

        assert first == second

    async def test_database_failure_rolls_back_and_acknowledges(
        self, processor, subscription_repo, event_repo, basic_plan, mock_user_id,
    ):
        await _seed_pending(subscription_repo, mock_user_id, basic_plan)
        subscription_repo.fail_writes = True

        outcome = await processor.process(_event(
            "customer.subscription.updated",
            _stripe_subscription(mock_user_id, status="past_due"),
        ))

        assert outcome is WebhookOutcome.FAILED
        assert subscription_repo.rows[mock_user_id].status == "incomplete"
        assert event_repo.processed == {}

    async def test_unhandled_event_type(self, processor, event_repo, mock_stripe_service):
        outcome = await processor.process(_event("invoice.payment_failed", {"id": "in_1"}))

        assert outcome is WebhookOutcome.IGNORED
        assert event_repo.processed == {}
        mock_stripe_service.retrieve_subscription.assert_not_called()

    def test_handled_event_types(self, processor):
        assert set(processor.handled_event_types) == {
            "checkout.session.completed",
            "invoice.payment_succeeded",
            "customer.subscription.updated",
            "customer.subscription.deleted",
        }
