"""イベントソースとハンドラの対応付け.

3 種類のイベントソースを扱う:
  - change:   テーブルへの INSERT（Supabase Database Webhook）
  - schedule: cron 形式の定期実行（外部 cron から CLI 経由で起動）
  - callable: 認証付き RPC（/rpc/{name}）

ハンドラは第 1 引数にストアを受け取る。ストアはレジストリ生成時に渡した
ファクトリから呼び出しごとに取得する。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from launchfeed.models import CallContext

logger = logging.getLogger(__name__)

# callable エラーコード -> HTTP ステータス
ERROR_STATUS = {
    "unauthenticated": 401,
    "permission-denied": 403,
    "not-found": 404,
    "invalid-argument": 400,
}


class HttpsError(Exception):
    """callable の呼び出し元に返す構造化エラー."""

    def __init__(self, code: str, message: str):
        if code not in ERROR_STATUS:
            raise ValueError(f"unknown error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def http_status(self) -> int:
        return ERROR_STATUS[self.code]

    def to_dict(self) -> dict:
        return {"status": self.code.upper().replace("-", "_"), "message": self.message}


@dataclass
class ScheduledJob:
    name: str
    cron: str  # UTC
    handler: Callable


class EventRegistry:
    """イベントソースごとのハンドラ登録簿."""

    def __init__(self, store_factory: Callable | None = None):
        self.store_factory = store_factory
        self.change_handlers: dict[str, list[Callable]] = {}
        self.jobs: dict[str, ScheduledJob] = {}
        self.callables: dict[str, Callable] = {}

    def _store(self, store):
        if store is not None:
            return store
        if self.store_factory is None:
            raise RuntimeError("store_factory が設定されていません")
        return self.store_factory()

    # --- 登録 ---

    def on_create(self, table: str):
        """table への INSERT で呼ばれるハンドラを登録する."""
        def decorator(func):
            self.change_handlers.setdefault(table, []).append(func)
            return func
        return decorator

    def schedule(self, name: str, cron: str):
        """定期実行ジョブを登録する."""
        def decorator(func):
            if name in self.jobs:
                raise ValueError(f"job already registered: {name}")
            self.jobs[name] = ScheduledJob(name=name, cron=cron, handler=func)
            return func
        return decorator

    def callable(self, name: str):
        """callable RPC を登録する."""
        def decorator(func):
            if name in self.callables:
                raise ValueError(f"callable already registered: {name}")
            self.callables[name] = func
            return func
        return decorator

    # --- 実行 ---

    def handles(self, table: str) -> bool:
        return table in self.change_handlers

    def dispatch_create(self, table: str, record: dict, store=None) -> list:
        """INSERT イベントを登録済みハンドラへ順に渡す."""
        handlers = self.change_handlers.get(table, [])
        if not handlers:
            logger.warning("ハンドラ未登録のテーブル: %s", table)
            return []
        store = self._store(store)
        return [handler(store, record) for handler in handlers]

    def run_job(self, name: str, store=None):
        """定期実行ジョブを 1 回実行する."""
        job = self.jobs.get(name)
        if job is None:
            raise KeyError(f"unknown job: {name}")
        logger.info("ジョブ実行: %s", name)
        return job.handler(self._store(store))

    def call(self, name: str, context: CallContext, data=None, store=None):
        """callable RPC を実行する."""
        func = self.callables.get(name)
        if func is None:
            raise HttpsError("not-found", f"Function {name} not found")
        return func(self._store(store), context, data)
