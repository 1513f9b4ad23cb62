"""Tests for the CLI entry point."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from solana_buy_tracker.__main__ import (
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
    EXIT_SUCCESS,
    configure_logging,
    create_parser,
    main,
    print_config_summary,
    run_config_check,
    run_pipeline,
    validate_config,
)
from solana_buy_tracker.shutdown import GracefulShutdown


@pytest.fixture
def telegram_env(monkeypatch):
    """Provide the required Telegram credentials."""
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123456:ABC-DEF")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "-1001234567890")
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.delenv("HEALTH_PORT", raising=False)
    monkeypatch.delenv("SOLANA_FALLBACK_RPC_URL", raising=False)


class TestCreateParser:
    """Tests for argument parser creation."""

    def test_parser_has_version(self):
        parser = create_parser()
        with pytest.raises(SystemExit) as exc_info:
            parser.parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_parser_config_check(self):
        parser = create_parser()
        args = parser.parse_args(["--config-check"])
        assert args.config_check is True

    def test_parser_log_level(self):
        parser = create_parser()
        args = parser.parse_args(["--log-level", "DEBUG"])
        assert args.log_level == "DEBUG"

    def test_parser_dry_run(self):
        parser = create_parser()
        args = parser.parse_args(["--dry-run"])
        assert args.dry_run is True

    def test_parser_health_port(self):
        parser = create_parser()
        args = parser.parse_args(["--health-port", "9090"])
        assert args.health_port == 9090

    def test_parser_default_values(self):
        parser = create_parser()
        args = parser.parse_args([])
        assert args.config_check is False
        assert args.log_level is None
        assert args.dry_run is False
        assert args.health_port is None


class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_configure_logging_info(self):
        configure_logging("INFO")

        assert logging.getLogger().level == logging.INFO

    def test_configure_logging_debug(self):
        configure_logging("DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_http_client_logs_quieted(self):
        """Request logs carry the bot token and stay at WARNING."""
        configure_logging("DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING


class TestValidateConfig:
    """Tests for configuration validation."""

    def test_validate_config_success(self, telegram_env):
        settings = validate_config()
        assert settings is not None
        assert settings.telegram.chat_id == "-1001234567890"

    def test_validate_config_failure(self, monkeypatch, capsys):
        """Should return None when the bot token is missing."""
        monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
        monkeypatch.setenv("TELEGRAM_CHAT_ID", "12345")

        settings = validate_config()
        assert settings is None

        captured = capsys.readouterr()
        assert "Configuration validation failed" in captured.err


class TestRunConfigCheck:
    """Tests for config check mode."""

    def test_config_check_prints_summary(self, telegram_env, capsys):
        settings = validate_config()
        assert settings is not None

        result = run_config_check(settings)
        assert result == EXIT_SUCCESS

        captured = capsys.readouterr()
        assert "Configuration is valid!" in captured.out
        assert "Configuration:" in captured.out
        assert "ABC-DEF" not in captured.out

    def test_summary_contains_version(self, telegram_env, capsys):
        settings = validate_config()
        assert settings is not None

        print_config_summary(settings, dry_run=True)

        captured = capsys.readouterr()
        assert "Solana Buy Tracker v0.1.0" in captured.out
        assert "Dry Run: True" in captured.out
        assert "(fallback: (not set))" in captured.out


class TestRunPipeline:
    """Tests for the pipeline runner."""

    async def test_runs_until_shutdown(self, telegram_env):
        """The pipeline is started, then stopped once shutdown is requested."""
        settings = validate_config()
        assert settings is not None
        pipeline = MagicMock()
        pipeline.start = AsyncMock()
        pipeline.stop = AsyncMock()

        with (
            patch("solana_buy_tracker.__main__.Pipeline", return_value=pipeline),
            patch.object(GracefulShutdown, "wait", AsyncMock()),
        ):
            result = await run_pipeline(settings, dry_run=True)

        assert result == EXIT_SUCCESS
        pipeline.start.assert_awaited_once()
        pipeline.stop.assert_awaited()

    async def test_start_failure(self, telegram_env):
        settings = validate_config()
        assert settings is not None
        pipeline = MagicMock()
        pipeline.start = AsyncMock(side_effect=RuntimeError("registry unreadable"))
        pipeline.stop = AsyncMock()

        with patch("solana_buy_tracker.__main__.Pipeline", return_value=pipeline):
            result = await run_pipeline(settings, dry_run=True)

        assert result == EXIT_ERROR
        pipeline.stop.assert_awaited()


class TestMain:
    """Tests for main entry point."""

    def test_main_with_config_check(self, telegram_env):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config-check"])

        assert exc_info.value.code == EXIT_SUCCESS

    def test_main_with_invalid_config(self, monkeypatch):
        """Main should exit with config error when credentials are missing."""
        monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
        monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)

        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == EXIT_CONFIG_ERROR

    def test_main_with_dry_run_and_config_check(self, telegram_env):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config-check", "--dry-run"])

        assert exc_info.value.code == EXIT_SUCCESS

    def test_main_health_port_override(self, telegram_env, capsys):
        with pytest.raises(SystemExit):
            main(["--config-check", "--health-port", "9090"])

        assert "Health Port: 9090" in capsys.readouterr().out

    @patch("solana_buy_tracker.__main__.run_pipeline")
    @patch("solana_buy_tracker.__main__.asyncio.run")
    def test_main_runs_pipeline(self, mock_asyncio_run, mock_run_pipeline, telegram_env):
        mock_asyncio_run.return_value = EXIT_SUCCESS

        with pytest.raises(SystemExit) as exc_info:
            main(["--dry-run"])

        assert exc_info.value.code == EXIT_SUCCESS
        mock_asyncio_run.assert_called_once()
        assert mock_run_pipeline.call_args.args[1] is True


class TestIntegration:
    """Integration tests for CLI invocation."""

    def test_cli_help_option(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["-h"])

        assert exc_info.value.code == 0
        captured = capsys.readouterr()
        assert "solana-buy-tracker" in captured.out
        assert "--config-check" in captured.out
        assert "--dry-run" in captured.out
        assert "--log-level" in captured.out

    def test_cli_version_option(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        captured = capsys.readouterr()
        assert "0.1.0" in captured.out

    def test_cli_invalid_log_level(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--log-level", "INVALID"])

        assert exc_info.value.code != 0
        captured = capsys.readouterr()
        assert "invalid choice" in captured.err
