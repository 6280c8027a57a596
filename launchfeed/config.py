"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- Supabase ---
SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "")
SUPABASE_SECRET_KEY: str = os.environ.get("SUPABASE_SECRET_KEY", "")
SUPABASE_SCHEMA: str = os.environ.get("SUPABASE_SCHEMA", "public")

# --- コレクション（テーブル）名 ---
PRODUCTS = "products"
COMMENTS = "comments"
UPVOTES = "upvotes"
NOTIFICATIONS = "notifications"
DAILY_RANKINGS = "dailyRankings"
AI_PRODUCTS = "aiProducts"
USERS = "users"

# --- Gemini ---
# 未設定の場合 AI 取得ジョブは何もせず終了する
GEMINI_API_KEY: str = os.environ.get("GEMINI_API_KEY", "")
GEMINI_MODEL = "gemini-2.0-flash-lite"
GEMINI_URL_TEMPLATE = (
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
)
GEMINI_PROMPT = """
Return ONLY valid JSON.
Generate 5 realistic NEW tech products launched today.

Format:
[
  {
    "name": "",
    "tagline": "",
    "description": "",
    "website": ""
  }
]

NO MARKDOWN, NO EXTRA TEXT.
"""

# --- 画像生成 URL ---
IMAGE_URL_TEMPLATE = (
    "https://image.pollinations.ai/prompt/{prompt}"
    "?width={width}&height={height}&model={model}&nologo=true"
)
IMAGE_WIDTH = 800
IMAGE_HEIGHT = 600
IMAGE_MODEL = "flux"
IMAGE_PROMPT_SUFFIX = "futuristic tech product render, high quality, ultra realistic"
AI_SOURCE_TAG = "gemini"

# --- ランキング ---
TRENDING_LIMIT = 50
PUBLISHED_STATUS = "published"

# --- スケジュール（UTC, cron 形式） ---
TRENDING_SCHEDULE = "5 0 * * *"
AI_FETCH_SCHEDULE = "0 */6 * * *"

# --- リクエスト設定 ---
REQUEST_TIMEOUT = 30  # 秒

# --- Webhook ---
# 空の場合は共有シークレットの検証を行わない
WEBHOOK_SECRET: str = os.environ.get("WEBHOOK_SECRET", "")

# --- ログ ---
LOG_DIR = Path(os.environ.get("LOG_DIR", _PROJECT_ROOT / "logs"))
