"""データモデル定義."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass
class Document:
    """ストアから読み出した1ドキュメント."""

    id: str
    data: dict


@dataclass
class RankEntry:
    """dailyRankings.topProducts の1要素."""

    product_id: str
    rank: int  # 1始まり
    upvote_count: int
    name: str
    tagline: str
    logo_url: str

    def to_record(self) -> dict:
        return {
            "productId": self.product_id,
            "rank": self.rank,
            "upvoteCount": self.upvote_count,
            "name": self.name,
            "tagline": self.tagline,
            "logoUrl": self.logo_url,
        }


@dataclass
class AiCandidate:
    """Gemini が返した商品候補."""

    name: str
    tagline: str = ""
    description: str = ""
    website: str = ""

    @classmethod
    def from_raw(cls, raw) -> AiCandidate | None:
        """モデル出力の1要素から候補を作る. name が空なら None."""
        if not isinstance(raw, dict):
            return None
        name = str(raw.get("name") or "").strip()
        if not name:
            return None
        return cls(
            name=name,
            tagline=str(raw.get("tagline") or ""),
            description=str(raw.get("description") or ""),
            website=str(raw.get("website") or ""),
        )


class FetchStatus(str, Enum):
    """AI 取得ジョブの結果種別."""

    MISSING_KEY = "missing_key"
    NETWORK_ERROR = "network_error"
    UPSTREAM_ERROR = "upstream_error"
    PARSE_ERROR = "parse_error"
    EMPTY = "empty"
    SUCCESS = "success"


@dataclass
class FetchResult:
    """AI 取得ジョブの実行結果."""

    status: FetchStatus
    added: int = 0
    skipped: int = 0  # 重複・名前なし
    failed: int = 0  # 書き込み失敗
    ids: list[str] = field(default_factory=list)


@dataclass
class CallContext:
    """callable 呼び出し元の認証情報."""

    uid: str | None = None
