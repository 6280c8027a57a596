"""main モジュールのテスト."""

from unittest.mock import patch

from launchfeed.app import app, get_store
from launchfeed.db import MemoryStore
from launchfeed.main import crontab_lines, main, run_job


def test_crontab_lines():
    lines = crontab_lines()

    assert "5 0 * * * python -m launchfeed.main run scheduledDailyTrending" in lines
    assert "0 */6 * * * python -m launchfeed.main run fetchAiProducts" in lines


def test_jobs_command(capsys):
    assert main(["jobs"]) == 0

    out = capsys.readouterr().out
    assert "scheduledDailyTrending" in out
    assert "fetchAiProducts" in out


def test_run_job_with_store(store):
    run_job("scheduledDailyTrending", store=store)

    assert len(store.query("dailyRankings")) == 1


@patch("launchfeed.main.setup_logging")
@patch("launchfeed.main.run_job")
def test_run_command(mock_run_job, mock_setup_logging):
    assert main(["run", "fetchAiProducts"]) == 0

    mock_setup_logging.assert_called_once()
    mock_run_job.assert_called_once_with("fetchAiProducts", store=None)


@patch("launchfeed.main.setup_logging")
@patch("launchfeed.main.run_job")
def test_run_command_memory(mock_run_job, mock_setup_logging):
    """--memory では MemoryStore がジョブに渡されること."""
    assert main(["run", "scheduledDailyTrending", "--memory"]) == 0

    store = mock_run_job.call_args.kwargs["store"]
    assert isinstance(store, MemoryStore)


@patch("launchfeed.main.setup_logging")
@patch("uvicorn.run")
def test_serve_command_memory(mock_uvicorn_run, mock_setup_logging):
    try:
        assert main(["serve", "--memory", "--port", "9000"]) == 0

        assert isinstance(app.dependency_overrides[get_store](), MemoryStore)
        assert mock_uvicorn_run.call_args.args == (app,)
        assert mock_uvicorn_run.call_args.kwargs["port"] == 9000
    finally:
        app.dependency_overrides.clear()
