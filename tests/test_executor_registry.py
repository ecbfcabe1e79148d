"""Tests for executor.registry module."""

from unittest.mock import MagicMock

from rettib_chat_mcp.executor.registry import StreamRegistry


def make_live_process():
    process = MagicMock()
    process.returncode = None
    return process


class TestStreamRegistry:
    """Tests for StreamRegistry."""

    def test_register_and_unregister(self):
        registry = StreamRegistry()
        process = make_live_process()

        active = registry.register("s1", process)

        assert "s1" in registry
        assert len(registry) == 1
        assert registry.get("s1") is active
        assert active.process is process

        registry.unregister("s1")
        registry.unregister("s1")
        assert "s1" not in registry
        assert registry.get("s1") is None

    def test_cancel_live_stream(self, reset_logger_singleton):
        """cancel() посылает terminate живому процессу."""
        registry = StreamRegistry()
        process = make_live_process()
        registry.register("s1", process)

        assert registry.cancel("s1") is True
        process.terminate.assert_called_once()
        # The run itself unregisters once the process exits
        assert "s1" in registry

    def test_cancel_unknown_stream(self):
        assert StreamRegistry().cancel("missing") is False

    def test_cancel_exited_stream(self):
        """Уже завершившийся процесс не трогаем."""
        registry = StreamRegistry()
        process = make_live_process()
        process.returncode = 0
        registry.register("s1", process)

        assert registry.cancel("s1") is False
        process.terminate.assert_not_called()

    def test_cancel_races_with_exit(self):
        registry = StreamRegistry()
        process = make_live_process()
        process.terminate.side_effect = ProcessLookupError()
        registry.register("s1", process)

        assert registry.cancel("s1") is True
