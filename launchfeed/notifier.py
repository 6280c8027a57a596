"""コメント・アップボート時の通知作成モジュール.

処理フロー:
  1. 親の商品を取得（存在しなければ終了）
  2. 商品オーナー（createdBy）が空、または本人のアクションなら終了
  3. notifications に1件書き込む

ストア操作の失敗はそのまま呼び出し元へ送出する（再試行はディスパッチャ側）。
"""

from __future__ import annotations

import logging

from launchfeed.config import NOTIFICATIONS, PRODUCTS
from launchfeed.db import SERVER_TIMESTAMP

logger = logging.getLogger(__name__)

_MESSAGES = {
    "comment": "{actor} commented on your product.",
    "upvote": "{actor} upvoted your product.",
}

_DEFAULT_ACTOR_NAME = "Someone"


def write_notification(store, kind: str, product_id: str, activity: dict | None) -> str | None:
    """アクション1件に対する通知を書き込む.

    Args:
        store: ドキュメントストア
        kind: "comment" or "upvote"
        product_id: 親の商品 ID
        activity: コメント／アップボートのレコード（userId, userInfo を含む）

    Returns:
        作成した通知の ID。スキップした場合は None。
    """
    if kind not in _MESSAGES:
        raise ValueError(f"unknown notification type: {kind}")
    if not activity or not product_id:
        return None

    product = store.get(PRODUCTS, product_id)
    if product is None:
        logger.info("商品が存在しないため通知をスキップ: product_id=%s", product_id)
        return None

    owner_id = product.get("createdBy")
    actor_id = activity.get("userId")
    if not owner_id or owner_id == actor_id:
        return None

    user_info = activity.get("userInfo") or {}
    actor_name = user_info.get("displayName") or _DEFAULT_ACTOR_NAME

    notification_id = store.add(NOTIFICATIONS, {
        "userId": owner_id,
        "type": kind,
        "productId": product_id,
        "actorId": actor_id,
        "actorName": actor_name,
        "actorPhoto": user_info.get("profilePicture") or "",
        "message": _MESSAGES[kind].format(actor=actor_name),
        "read": False,
        "createdAt": SERVER_TIMESTAMP,
    })
    logger.info(
        "通知作成: type=%s, product_id=%s, user_id=%s", kind, product_id, owner_id,
    )
    return notification_id


def notify_on_comment(store, product_id: str, comment: dict | None) -> str | None:
    return write_notification(store, "comment", product_id, comment)


def notify_on_upvote(store, product_id: str, upvote: dict | None) -> str | None:
    return write_notification(store, "upvote", product_id, upvote)
