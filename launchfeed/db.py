"""ドキュメントストア操作モジュール.

コレクション単位の読み書きを以下の4操作に限定する:
  - get: ID 指定の1件取得
  - add: 自動採番で1件挿入
  - set: ID 指定で上書き（マージしない）
  - query: 等価・範囲フィルタ + 複数キーソート + 件数制限

本番は Supabase（コレクション = テーブル）、テストとローカル実行は MemoryStore を使う。
"""

from __future__ import annotations

import copy
import logging
import operator
import uuid
from datetime import datetime, timezone

import httpx
from postgrest.exceptions import APIError
from supabase import AuthError, create_client

from launchfeed.config import SUPABASE_SCHEMA, SUPABASE_SECRET_KEY, SUPABASE_URL
from launchfeed.models import Document

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """データストア操作の失敗."""


class _ServerTimestamp:
    """書き込み時刻に置き換えられるプレースホルダ."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


SERVER_TIMESTAMP = _ServerTimestamp()

_OPERATORS = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

# PostgREST のフィルタメソッド名
_POSTGREST_FILTERS = {
    "==": "eq",
    "<": "lt",
    "<=": "lte",
    ">": "gt",
    ">=": "gte",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _resolve(value, now: datetime, serialize: bool):
    """SERVER_TIMESTAMP を置換し、必要なら datetime を ISO 8601 にする."""
    if isinstance(value, _ServerTimestamp):
        value = now
    if isinstance(value, datetime):
        return value.isoformat() if serialize else value
    if isinstance(value, dict):
        return {k: _resolve(v, now, serialize) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve(v, now, serialize) for v in value]
    return value


def _check_op(op: str) -> None:
    if op not in _OPERATORS:
        raise ValueError(f"unsupported filter operator: {op}")


class SupabaseStore:
    """Supabase のテーブルをコレクションとして扱うストア."""

    def __init__(self, client=None, schema: str = SUPABASE_SCHEMA):
        if client is None:
            if not SUPABASE_URL or not SUPABASE_SECRET_KEY:
                raise StoreError("SUPABASE_URL / SUPABASE_SECRET_KEY が未設定です")
            client = create_client(SUPABASE_URL, SUPABASE_SECRET_KEY)
        self._client = client
        self._schema = schema

    def _table(self, name: str):
        """指定スキーマのテーブルを参照する."""
        return self._client.schema(self._schema).table(name)

    def _execute(self, request, action: str, collection: str):
        try:
            return request.execute()
        except (APIError, httpx.HTTPError) as e:
            raise StoreError(f"{action} failed on {collection}: {e}") from e

    def get(self, collection: str, doc_id: str) -> dict | None:
        """ID 指定で1件取得する. 存在しなければ None."""
        resp = self._execute(
            self._table(collection).select("*").eq("id", doc_id).limit(1),
            "get", collection,
        )
        if not resp.data:
            return None
        row = dict(resp.data[0])
        row.pop("id", None)
        return row

    def add(self, collection: str, data: dict) -> str:
        """自動採番で1件挿入し、採番された ID を返す."""
        row = _resolve(data, _now(), serialize=True)
        row.setdefault("id", uuid.uuid4().hex)
        self._execute(self._table(collection).insert(row), "add", collection)
        logger.debug("%s に 1 件挿入: id=%s", collection, row["id"])
        return row["id"]

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        """ID 指定で上書きする."""
        row = _resolve(data, _now(), serialize=True)
        row["id"] = doc_id
        self._execute(self._table(collection).upsert(row), "set", collection)
        logger.debug("%s/%s を上書き", collection, doc_id)

    def query(
        self,
        collection: str,
        filters: list[tuple[str, str, object]] | None = None,
        order_by: list[tuple[str, bool]] | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        """条件に合うドキュメントを取得する.

        Args:
            filters: [(field, op, value), ...]  op は ==, <, <=, >, >=
            order_by: [(field, descending), ...]
            limit: 最大件数
        """
        request = self._table(collection).select("*")
        for field, op, value in filters or []:
            _check_op(op)
            value = _resolve(value, _now(), serialize=True)
            request = getattr(request, _POSTGREST_FILTERS[op])(field, value)
        for field, descending in order_by or []:
            # ソートキーが NULL の行は除外（MemoryStore と同じ扱い）
            request = request.not_.is_(field, "null")
            request = request.order(field, desc=descending)
        if limit is not None:
            request = request.limit(limit)

        resp = self._execute(request, "query", collection)
        docs = []
        for row in resp.data:
            row = dict(row)
            doc_id = str(row.pop("id"))
            docs.append(Document(id=doc_id, data=row))
        return docs

    def resolve_user_id(self, token: str) -> str | None:
        """アクセストークンからユーザー ID を取得する. 無効なら None."""
        try:
            resp = self._client.auth.get_user(token)
        except AuthError as e:
            logger.info("トークン検証失敗: %s", e)
            return None
        if resp is None or resp.user is None:
            return None
        return resp.user.id


class MemoryStore:
    """プロセス内メモリ上のストア（テスト・ローカル実行用）."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {}
        self.tokens: dict[str, str] = {}  # token -> uid

    def _docs(self, collection: str) -> dict[str, dict]:
        return self.collections.setdefault(collection, {})

    def get(self, collection: str, doc_id: str) -> dict | None:
        data = self._docs(collection).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self._docs(collection)[doc_id] = _resolve(copy.deepcopy(data), _now(), serialize=False)
        return doc_id

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._docs(collection)[doc_id] = _resolve(copy.deepcopy(data), _now(), serialize=False)

    def query(
        self,
        collection: str,
        filters: list[tuple[str, str, object]] | None = None,
        order_by: list[tuple[str, bool]] | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        filters = filters or []
        order_by = order_by or []
        for _, op, _ in filters:
            _check_op(op)

        matched = []
        for doc_id, data in self._docs(collection).items():
            # フィルタ・ソート対象のフィールドを持たないドキュメントは除外
            if any(f not in data or data[f] is None for f, _, _ in filters):
                continue
            if any(f not in data or data[f] is None for f, _ in order_by):
                continue
            if all(_OPERATORS[op](data[f], v) for f, op, v in filters):
                matched.append(Document(id=doc_id, data=copy.deepcopy(data)))

        # 安定ソートを後ろのキーから順に適用
        for f, descending in reversed(order_by):
            matched.sort(key=lambda d: d.data[f], reverse=descending)

        if limit is not None:
            matched = matched[:limit]
        return matched

    def resolve_user_id(self, token: str) -> str | None:
        return self.tokens.get(token)
