# API Routes Module
from postgen.api.routes import (
    posts,
    subscriptions,
    webhooks,
)

__all__ = [
    "posts",
    "subscriptions",
    "webhooks",
]
