"""イベントハンドラ定義 — 各イベントソースへの登録."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from launchfeed.ai_fetcher import fetch_ai_products
from launchfeed.config import (
    AI_FETCH_SCHEDULE,
    COMMENTS,
    TRENDING_SCHEDULE,
    UPVOTES,
    USERS,
)
from launchfeed.db import SupabaseStore
from launchfeed.models import CallContext
from launchfeed.notifier import notify_on_comment, notify_on_upvote
from launchfeed.trending import build_trending
from launchfeed.triggers import EventRegistry, HttpsError

logger = logging.getLogger(__name__)

registry = EventRegistry(store_factory=SupabaseStore)


@registry.on_create(COMMENTS)
def on_new_comment(store, record: dict):
    return notify_on_comment(store, record.get("productId"), record)


@registry.on_create(UPVOTES)
def on_new_upvote(store, record: dict):
    return notify_on_upvote(store, record.get("productId"), record)


@registry.schedule("scheduledDailyTrending", TRENDING_SCHEDULE)
def scheduled_daily_trending(store):
    return build_trending(store, datetime.now(timezone.utc))


@registry.schedule("fetchAiProducts", AI_FETCH_SCHEDULE)
def scheduled_fetch_ai_products(store):
    return fetch_ai_products(store)


@registry.callable("generateDailyTrendingNow")
def generate_daily_trending_now(store, context: CallContext, data=None) -> dict:
    """管理者の手動操作で当日のランキングを再生成する."""
    if not context.uid:
        raise HttpsError("unauthenticated", "Login required")

    user = store.get(USERS, context.uid)
    if user is None or user.get("role") != "admin":
        logger.warning("管理者以外からの呼び出し: uid=%s", context.uid)
        raise HttpsError("permission-denied", "Admins only")

    return {"dateId": build_trending(store, datetime.now(timezone.utc))}
