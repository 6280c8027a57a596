"""Webhook・callable RPC 受付用 FastAPI アプリケーション."""

from __future__ import annotations

import logging
import secrets
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from launchfeed import config
from launchfeed.db import StoreError
from launchfeed.handlers import registry
from launchfeed.models import CallContext
from launchfeed.triggers import HttpsError

logger = logging.getLogger(__name__)

app = FastAPI(title="launchfeed", version="0.1.0", description="Product launch event handlers")


class WebhookPayload(BaseModel):
    """Supabase Database Webhook のペイロード."""
    type: str
    table: str
    record: Optional[dict[str, Any]] = None
    old_record: Optional[dict[str, Any]] = None


class CallRequest(BaseModel):
    """callable RPC のリクエストボディ."""
    data: Any = None


def get_store():
    """リクエストごとのストア. テストでは dependency_overrides で差し替える."""
    return registry.store_factory()


def verify_webhook_secret(x_webhook_secret: Optional[str] = Header(default=None)):
    """WEBHOOK_SECRET が設定されていれば共有シークレットを検証する."""
    expected = config.WEBHOOK_SECRET
    if not expected:
        return
    if not x_webhook_secret or not secrets.compare_digest(x_webhook_secret, expected):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


@app.exception_handler(HttpsError)
async def handle_https_error(request, exc: HttpsError):
    return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})


@app.exception_handler(StoreError)
async def handle_store_error(request, exc: StoreError):
    logger.error("ストア操作失敗: %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"status": "INTERNAL", "message": "Data store operation failed"}},
    )


@app.get("/healthz")
def healthz():
    return {"ok": True, "service": "launchfeed"}


@app.post("/webhooks/{table}", dependencies=[Depends(verify_webhook_secret)])
def receive_webhook(table: str, payload: WebhookPayload, store=Depends(get_store)):
    """INSERT イベントを登録済みハンドラへ渡す."""
    if not registry.handles(table):
        raise HTTPException(status_code=404, detail=f"No handler for table {table}")
    if payload.table != table:
        raise HTTPException(status_code=400, detail="Table mismatch")
    if payload.type != "INSERT" or not payload.record:
        return {"ok": True, "dispatched": 0, "results": []}

    results = registry.dispatch_create(table, payload.record, store=store)
    return {"ok": True, "dispatched": len(results), "results": results}


@app.post("/rpc/{name}")
def call_function(
    name: str,
    body: Optional[CallRequest] = None,
    authorization: Optional[str] = Header(default=None),
    store=Depends(get_store),
):
    """callable RPC. Authorization: Bearer <access token>."""
    token = _bearer_token(authorization)
    uid = store.resolve_user_id(token) if token else None
    data = body.data if body else None
    result = registry.call(name, CallContext(uid=uid), data, store=store)
    return {"result": result}
