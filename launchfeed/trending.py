"""日次トレンドランキング生成モジュール.

処理フロー:
  1. 対象時刻を含む UTC 日の範囲 [00:00, 翌00:00) を求める
  2. 範囲内に launchDate を持つ公開済み商品を取得
     （launchDate 昇順 → upvoteCount 降順、最大 50 件）
  3. 取得順に 1 始まりの順位を付ける
  4. dailyRankings/<YYYY-MM-DD> を丸ごと上書きする

同じ日に何度実行しても結果は同じ内容で上書きされる。
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from launchfeed.config import DAILY_RANKINGS, PRODUCTS, PUBLISHED_STATUS, TRENDING_LIMIT
from launchfeed.db import SERVER_TIMESTAMP
from launchfeed.models import RankEntry

logger = logging.getLogger(__name__)


def utc_day_window(target: datetime) -> tuple[datetime, datetime]:
    """target を含む UTC 日の [開始, 終了) を返す. naive な datetime は UTC とみなす."""
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)
    target = target.astimezone(timezone.utc)
    start = datetime(target.year, target.month, target.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def date_id(start: datetime) -> str:
    """ドキュメント ID（YYYY-MM-DD）."""
    return start.strftime("%Y-%m-%d")


def _to_entry(doc, rank: int) -> RankEntry:
    data = doc.data
    return RankEntry(
        product_id=doc.id,
        rank=rank,
        upvote_count=data.get("upvoteCount") or 0,
        name=data.get("name") or "",
        tagline=data.get("tagline") or "",
        logo_url=data.get("logoUrl") or "",
    )


def build_trending(store, target: datetime | None = None) -> str:
    """target の属する日のランキングを生成・保存し、日付 ID を返す."""
    if target is None:
        target = datetime.now(timezone.utc)
    start, end = utc_day_window(target)

    docs = store.query(
        PRODUCTS,
        filters=[
            ("status", "==", PUBLISHED_STATUS),
            ("launchDate", ">=", start),
            ("launchDate", "<", end),
        ],
        order_by=[("launchDate", False), ("upvoteCount", True)],
        limit=TRENDING_LIMIT,
    )
    entries = [_to_entry(doc, i) for i, doc in enumerate(docs, start=1)]

    ranking_id = date_id(start)
    store.set(DAILY_RANKINGS, ranking_id, {
        "date": start,
        "generatedAt": SERVER_TIMESTAMP,
        "topProducts": [e.to_record() for e in entries],
        "totalProducts": len(entries),
    })
    logger.info("dailyRankings/%s を保存: %d 件", ranking_id, len(entries))
    return ranking_id
