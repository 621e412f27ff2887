from unittest.mock import patch

from main import run
from regprune.errors import UnexpectedStatus
from regprune.models import RunSummary


def test_conflicting_strategies_make_no_requests():
    with patch("main.cleanup_registry") as mock_cleanup:
        code = run(["--registry", "http://localhost:5000", "--keep", "2", "--pattern", "dev"])
    assert code == 1
    mock_cleanup.assert_not_called()


def test_missing_strategy_fails():
    with patch("main.cleanup_registry") as mock_cleanup:
        code = run(["--registry", "http://localhost:5000"])
    assert code == 1
    mock_cleanup.assert_not_called()


def test_exit_status_reflects_errors():
    async def failing(config, strategy):
        return RunSummary(errors=["Error resolving app:v1. boom"], failures=1)

    async def clean(config, strategy):
        return RunSummary(repositories=1, tags_kept=2)

    with patch("main.cleanup_registry", side_effect=failing), patch("main.init_logger"):
        assert run(["--registry", "http://localhost:5000", "--keep", "1"]) == 1
    with patch("main.cleanup_registry", side_effect=clean), patch("main.init_logger"):
        assert run(["--registry", "http://localhost:5000", "--keep", "1"]) == 0


def test_catalog_failure_exit_status():
    async def broken(config, strategy):
        raise UnexpectedStatus("Error getting catalog", "http://localhost:5000/v2/_catalog", 500)

    with patch("main.cleanup_registry", side_effect=broken), patch("main.init_logger"):
        assert run(["--registry", "http://localhost:5000", "--older-than", "30"]) == 1
