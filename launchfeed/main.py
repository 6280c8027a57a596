"""launchfeed — メインエントリーポイント.

使い方:
  python -m launchfeed.main run scheduledDailyTrending   # 日次ランキング生成
  python -m launchfeed.main run fetchAiProducts          # AI 商品取得
  python -m launchfeed.main jobs                         # crontab 行を出力
  python -m launchfeed.main serve                        # Webhook / RPC サーバ起動

--memory を付けると Supabase の代わりに MemoryStore を使う（ローカル確認用）。

定期実行は外部 cron（UTC）から run サブコマンドを呼び出す。
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime

from launchfeed.config import LOG_DIR
from launchfeed.db import MemoryStore
from launchfeed.handlers import registry


def setup_logging() -> None:
    """ロギングの初期設定."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / f"launchfeed_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def run_job(name: str, store=None) -> None:
    """定期実行ジョブを 1 回実行する."""
    logger = logging.getLogger(__name__)
    logger.info("=== %s 開始 ===", name)
    start_time = time.time()

    result = registry.run_job(name, store=store)

    elapsed = time.time() - start_time
    logger.info("=== %s 完了 ===", name)
    logger.info("結果: %s, 所要時間: %.1f 秒", result, elapsed)


def crontab_lines() -> list[str]:
    """登録済みジョブを crontab 形式で返す."""
    return [
        f"{job.cron} python -m launchfeed.main run {job.name}"
        for job in registry.jobs.values()
    ]


def serve(host: str, port: int, store=None) -> None:
    import uvicorn

    from launchfeed.app import app, get_store

    if store is not None:
        app.dependency_overrides[get_store] = lambda: store
    uvicorn.run(app, host=host, port=port, log_config=None)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="launchfeed")
    sub = parser.add_subparsers(dest="command", required=True)

    run_parser = sub.add_parser("run", help="定期実行ジョブを 1 回実行する")
    run_parser.add_argument("job", choices=sorted(registry.jobs))
    run_parser.add_argument("--memory", action="store_true", help="MemoryStore で実行する")

    sub.add_parser("jobs", help="crontab 行を出力する")

    serve_parser = sub.add_parser("serve", help="Webhook / RPC サーバを起動する")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8080)
    serve_parser.add_argument("--memory", action="store_true", help="MemoryStore で起動する")

    args = parser.parse_args(argv)

    if args.command == "jobs":
        print("\n".join(crontab_lines()))
        return 0

    setup_logging()
    store = MemoryStore() if args.memory else None
    if args.command == "run":
        run_job(args.job, store=store)
    elif args.command == "serve":
        serve(args.host, args.port, store=store)
    return 0


if __name__ == "__main__":
    sys.exit(main())
