"""AI 生成商品の取得・保存モジュール.

処理フロー:
  1. Gemini に 5 件の商品候補（JSON 配列）を生成させる
  2. 応答テキストから最初の [ ... ] 部分を取り出してパース
  3. 名前（前後空白除去）が既存の aiProducts と重複する候補はスキップ
  4. 名前・タグラインから画像生成 URL を組み立てる（画像自体は取得しない）
  5. aiProducts に保存し、追加件数を返す

API キー未設定・通信失敗・パース失敗はいずれも「候補 0 件」として正常終了する。
"""

from __future__ import annotations

import json
import logging
import re
from urllib.parse import quote

import requests

from launchfeed import config
from launchfeed.config import (
    AI_PRODUCTS,
    AI_SOURCE_TAG,
    GEMINI_MODEL,
    GEMINI_PROMPT,
    GEMINI_URL_TEMPLATE,
    IMAGE_HEIGHT,
    IMAGE_MODEL,
    IMAGE_PROMPT_SUFFIX,
    IMAGE_URL_TEMPLATE,
    IMAGE_WIDTH,
    REQUEST_TIMEOUT,
)
from launchfeed.db import SERVER_TIMESTAMP, StoreError
from launchfeed.models import AiCandidate, FetchResult, FetchStatus

logger = logging.getLogger(__name__)

# 最初の "[" から最後の "]" まで（改行を含む）
_JSON_ARRAY_PATTERN = re.compile(r"\[.*\]", re.DOTALL)

# encodeURIComponent と同じくエスケープしない記号
_URI_COMPONENT_SAFE = "!~*'()"


def _deep_get(d, *keys):
    """ネストされた dict / list から安全に値を取得する."""
    for key in keys:
        if isinstance(key, int):
            if not isinstance(d, list) or len(d) <= key:
                return None
        elif not isinstance(d, dict):
            return None
        d = d[key] if isinstance(key, int) else d.get(key)
    return d


def extract_json_array(text: str) -> str | None:
    """モデル出力から JSON 配列らしき部分文字列を取り出す."""
    m = _JSON_ARRAY_PATTERN.search(text or "")
    return m.group(0) if m else None


def generate_candidates(api_key: str) -> tuple[FetchStatus, list]:
    """Gemini に商品候補を生成させる.

    Returns:
        (結果種別, 候補リスト)。失敗時は候補リストが空。
    """
    if not api_key:
        logger.error("Gemini API キーが未設定です")
        return FetchStatus.MISSING_KEY, []

    url = GEMINI_URL_TEMPLATE.format(model=GEMINI_MODEL)
    body = {"contents": [{"parts": [{"text": GEMINI_PROMPT}]}]}
    logger.info("Gemini 呼び出し: %s", url)

    try:
        resp = requests.post(
            url,
            params={"key": api_key},
            json=body,
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error("Gemini 呼び出し失敗: %s", e)
        return FetchStatus.NETWORK_ERROR, []

    try:
        payload = resp.json()
    except ValueError as e:
        logger.error("Gemini 応答が JSON ではありません: status=%s, error=%s", resp.status_code, e)
        return FetchStatus.UPSTREAM_ERROR, []

    if not isinstance(payload, dict) or payload.get("error"):
        logger.error("Gemini エラー応答: %s", payload)
        return FetchStatus.UPSTREAM_ERROR, []

    raw = (
        _deep_get(payload, "candidates", 0, "content", "parts", 0, "text")
        or _deep_get(payload, "candidates", 0, "content", 0, "text")
    )
    if not raw:
        return FetchStatus.EMPTY, []
    if not isinstance(raw, str):
        logger.warning("応答テキストが文字列ではありません: %s", type(raw).__name__)
        return FetchStatus.PARSE_ERROR, []

    array_text = extract_json_array(raw)
    if array_text is None:
        logger.warning("応答に JSON 配列が見つかりません")
        return FetchStatus.PARSE_ERROR, []

    try:
        items = json.loads(array_text)
    except json.JSONDecodeError as e:
        logger.warning("JSON パースエラー: %s", e)
        return FetchStatus.PARSE_ERROR, []
    if not isinstance(items, list):
        return FetchStatus.PARSE_ERROR, []

    return (FetchStatus.SUCCESS if items else FetchStatus.EMPTY), items


def build_image_url(name: str, tagline: str = "") -> str:
    """候補の名前・タグラインから画像生成 URL を組み立てる."""
    prompt = f"{name} {tagline} {IMAGE_PROMPT_SUFFIX}"
    return IMAGE_URL_TEMPLATE.format(
        prompt=quote(prompt, safe=_URI_COMPONENT_SAFE),
        width=IMAGE_WIDTH,
        height=IMAGE_HEIGHT,
        model=IMAGE_MODEL,
    )


def _exists(store, name: str) -> bool:
    docs = store.query(AI_PRODUCTS, filters=[("name", "==", name)], limit=1)
    return bool(docs)


def fetch_ai_products(store, api_key: str | None = None) -> FetchResult:
    """AI 生成商品を取得して保存する（6 時間ごとのジョブ本体）."""
    if api_key is None:
        api_key = config.GEMINI_API_KEY
    logger.info("AI 商品取得 開始")

    status, items = generate_candidates(api_key)
    if not items:
        logger.warning("候補がありません: status=%s", status.value)
        return FetchResult(status=status)

    result = FetchResult(status=FetchStatus.SUCCESS)
    for raw in items:
        candidate = AiCandidate.from_raw(raw)
        if candidate is None:
            result.skipped += 1
            continue

        try:
            # 重複チェック
            if _exists(store, candidate.name):
                logger.info("重複のためスキップ: %s", candidate.name)
                result.skipped += 1
                continue

            doc_id = store.add(AI_PRODUCTS, {
                "name": candidate.name,
                "tagline": candidate.tagline,
                "description": candidate.description,
                "website": candidate.website,
                "image": build_image_url(candidate.name, candidate.tagline),
                "createdAt": SERVER_TIMESTAMP,
                "source": AI_SOURCE_TAG,
            })
        except StoreError:
            # 1 件の失敗で残りの候補を止めない
            logger.exception("保存失敗: %s", candidate.name)
            result.failed += 1
            continue

        result.ids.append(doc_id)
        result.added += 1

    logger.info(
        "AI 商品取得 完了: 追加 %d 件, スキップ %d 件, 失敗 %d 件",
        result.added, result.skipped, result.failed,
    )
    return result
