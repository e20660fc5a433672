"""Notification boundary: hub, transports, and the UI subscription feed."""

from farmtrack.notifications.feed import FeedItem, Subscription, SubscriptionFeed
from farmtrack.notifications.hub import LoggingNotifier, NotificationHub, StageNotifier
from farmtrack.notifications.redis_notifier import RedisStageNotifier, order_channel

__all__ = [
    "FeedItem",
    "LoggingNotifier",
    "NotificationHub",
    "RedisStageNotifier",
    "StageNotifier",
    "Subscription",
    "SubscriptionFeed",
    "order_channel",
]
