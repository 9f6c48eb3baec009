"""
Database Infrastructure Package for PostGen API

Exports database utilities and dependency providers.
"""

from postgen.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    get_session,
    get_session_context,
    init_db,
    close_db,
)

from postgen.infrastructure.db.dependencies import (
    SessionDep,
    get_plan_repository,
    get_subscription_repository,
    get_usage_repository,
    get_saved_post_repository,
    get_webhook_event_repository,
    PlanRepoDep,
    SubscriptionRepoDep,
    UsageRepoDep,
    SavedPostRepoDep,
    WebhookEventRepoDep,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "SessionDep",
    "get_plan_repository",
    "get_subscription_repository",
    "get_usage_repository",
    "get_saved_post_repository",
    "get_webhook_event_repository",
    "PlanRepoDep",
    "SubscriptionRepoDep",
    "UsageRepoDep",
    "SavedPostRepoDep",
    "WebhookEventRepoDep",
]
