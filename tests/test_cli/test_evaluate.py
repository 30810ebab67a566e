"""Tests for the penny-alerts CLI."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from src.alerts.schemas import EvaluationResult
from src.alerts.service import ALREADY_RUNNING_MESSAGE
from src.cli import main


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.health_check.return_value = True
    return db


def _invoke_evaluate(runner, mock_db, result):
    service = MagicMock()
    service.run_evaluation = AsyncMock(return_value=result)
    with patch("src.storage.database.Database", return_value=mock_db), \
         patch("src.alerts.service.create_alert_service", return_value=service) as factory:
        outcome = runner.invoke(main, ["evaluate"])
    return outcome, factory


# ── evaluate ──────────────────────────────────────────────


class TestEvaluateCommand:
    """Tests for `penny-alerts evaluate`."""

    def test_success_exits_zero(self, runner, mock_db):
        result = EvaluationResult(evaluated=4, triggered=2, sent=2, failed=0)

        outcome, factory = _invoke_evaluate(runner, mock_db, result)

        assert outcome.exit_code == 0, outcome.output
        assert "Evaluated: 4" in outcome.output
        assert "Sent:      2" in outcome.output
        factory.assert_called_once_with(mock_db)
        mock_db.connect.assert_awaited_once()
        mock_db.close.assert_awaited_once()

    def test_errors_exit_one(self, runner, mock_db):
        result = EvaluationResult(
            evaluated=2, triggered=2, sent=1, failed=1,
            errors=["Alert alert-2: database connection lost"],
        )

        outcome, _ = _invoke_evaluate(runner, mock_db, result)

        assert outcome.exit_code == 1
        assert "Alert alert-2: database connection lost" in outcome.output

    def test_failed_send_without_error_exits_zero(self, runner, mock_db):
        result = EvaluationResult(evaluated=1, triggered=1, failed=1)

        outcome, _ = _invoke_evaluate(runner, mock_db, result)

        assert outcome.exit_code == 0
        assert "Failed:    1" in outcome.output

    def test_skipped_run_exits_zero(self, runner, mock_db):
        result = EvaluationResult(skipped=True, errors=[ALREADY_RUNNING_MESSAGE])

        outcome, _ = _invoke_evaluate(runner, mock_db, result)

        assert outcome.exit_code == 0
        assert "another evaluation is running" in outcome.output

    def test_lock_store_outage_exits_one(self, runner, mock_db):
        result = EvaluationResult(
            errors=["System error: Job lock store unavailable for ALERT_EVALUATION: refused"],
        )

        outcome, _ = _invoke_evaluate(runner, mock_db, result)

        assert outcome.exit_code == 1
        assert "another evaluation is running" not in outcome.output
        assert "Job lock store unavailable" in outcome.output


# ── init-db / health ──────────────────────────────────────


class TestInitDb:
    def test_creates_tables(self, runner, mock_db):
        with patch("src.storage.database.Database", return_value=mock_db), \
             patch("src.storage.schema.create_tables", new_callable=AsyncMock) as create:
            outcome = runner.invoke(main, ["init-db"])

        assert outcome.exit_code == 0, outcome.output
        create.assert_awaited_once_with(mock_db)
        assert "Database initialized successfully" in outcome.output
        mock_db.close.assert_awaited_once()


class TestHealthCommand:
    def test_healthy(self, runner, mock_db):
        with patch("src.storage.database.Database", return_value=mock_db):
            outcome = runner.invoke(main, ["health"])

        assert outcome.exit_code == 0
        assert "postgres: True" in outcome.output

    def test_database_down(self, runner, mock_db):
        mock_db.connect.side_effect = ConnectionError("refused")
        with patch("src.storage.database.Database", return_value=mock_db):
            outcome = runner.invoke(main, ["health"])

        assert outcome.exit_code == 1
        assert "postgres: False" in outcome.output
