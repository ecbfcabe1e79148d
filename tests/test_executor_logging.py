"""Tests for executor.logging module."""

import logging as std_logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from rettib_chat_mcp.executor import logging


@pytest.fixture
def clean_logger():
    """Очистка handlers глобального логгера до и после теста."""
    test_logger = std_logging.getLogger("rettib_chat")
    saved = list(test_logger.handlers)
    test_logger.handlers.clear()
    yield test_logger
    for handler in test_logger.handlers:
        handler.close()
    test_logger.handlers[:] = saved


class TestGetLogger:
    """Tests for get_logger() function."""

    def test_get_logger_without_file(self, monkeypatch, reset_logger_singleton, clean_logger):
        """Без RETTIB_LOG_FILE логгер создаётся без handlers."""
        monkeypatch.delenv("RETTIB_LOG_FILE", raising=False)

        logger = logging.get_logger()

        assert logger.name == "rettib_chat"
        assert logger.level == std_logging.DEBUG
        assert logger.handlers == []

    def test_get_logger_singleton(self, monkeypatch, reset_logger_singleton, clean_logger):
        """Повторный вызов возвращает тот же экземпляр."""
        monkeypatch.delenv("RETTIB_LOG_FILE", raising=False)

        with patch.object(logging, "_setup_logger", wraps=logging._setup_logger) as mock_setup:
            logger1 = logging.get_logger()
            logger2 = logging.get_logger()

        assert logger1 is logger2
        assert mock_setup.call_count == 1


class TestSetupLogger:
    """Tests for _setup_logger() function."""

    def test_explicit_file_path(self, tmp_path, monkeypatch, reset_logger_singleton, clean_logger):
        """Путь из RETTIB_LOG_FILE используется как есть, каталоги создаются."""
        log_file = tmp_path / "nested" / "chat.log"
        monkeypatch.setenv("RETTIB_LOG_FILE", str(log_file))

        logger = logging.get_logger()
        logger.info("hello from test")
        for handler in logger.handlers:
            handler.flush()

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], std_logging.FileHandler)
        assert "| INFO | hello from test" in log_file.read_text(encoding="utf-8")

    @pytest.mark.parametrize("flag", ["1", "true", "YES", "on"])
    def test_flag_uses_default_directory(self, flag, tmp_path, monkeypatch, reset_logger_singleton, clean_logger):
        """Флаг включает лог в ./logs/chat_<дата>.log."""
        monkeypatch.setenv("RETTIB_LOG_FILE", flag)
        monkeypatch.chdir(tmp_path)

        with patch("rettib_chat_mcp.executor.logging.datetime") as mock_datetime:
            mock_now = MagicMock()
            mock_now.strftime.return_value = "2025-01-15"
            mock_datetime.now.return_value = mock_now

            logger = logging.get_logger()

        assert Path(logger.handlers[0].baseFilename) == tmp_path / "logs" / "chat_2025-01-15.log"

    def test_file_error_falls_back_to_stream(self, monkeypatch, reset_logger_singleton, clean_logger):
        """Ошибка открытия файла не роняет сервер: используется StreamHandler."""
        monkeypatch.setenv("RETTIB_LOG_FILE", "/tmp/rettib-test.log")

        with patch("rettib_chat_mcp.executor.logging.logging.FileHandler", side_effect=PermissionError("denied")):
            logger = logging.get_logger()

        assert len(logger.handlers) == 1
        assert type(logger.handlers[0]) is std_logging.StreamHandler

    def test_existing_handlers_not_duplicated(self, monkeypatch, reset_logger_singleton, clean_logger):
        monkeypatch.setenv("RETTIB_LOG_FILE", "/tmp/rettib-test.log")
        existing = std_logging.NullHandler()
        clean_logger.addHandler(existing)

        logger = logging.get_logger()

        assert logger.handlers == [existing]
