"""
Tests for the static Logger and its storage strategies.
"""

from xlink_kmc.utils.logger import LocalFileStrategy, Logger, MemoryStrategy


class TestLogger:
    """Tests for priority filtering and enable/disable."""

    def test_records_reach_strategy(self, memory_log):
        Logger.log("hello", Logger.LogPriority.INFO)
        assert memory_log.messages("INFO") == ["hello"]

    def test_default_priority_is_debug(self, memory_log):
        Logger.log("trace")
        assert memory_log.messages("DEBUG") == ["trace"]

    def test_min_priority_filters(self, memory_log):
        Logger.set_min_priority(Logger.LogPriority.WARNING)
        Logger.log("dropped", Logger.LogPriority.INFO)
        Logger.log("kept", Logger.LogPriority.ERROR)
        assert memory_log.messages() == ["kept"]

    def test_disable_logging(self, memory_log):
        Logger.disable_logging()
        Logger.log("silent", Logger.LogPriority.CRITICAL)
        Logger.enable_logging()
        Logger.log("loud", Logger.LogPriority.CRITICAL)
        assert memory_log.messages() == ["loud"]

    def test_flush(self, memory_log):
        Logger.log("a", Logger.LogPriority.INFO)
        Logger.flush_logs()
        assert memory_log.records == []

    def test_initialize_keeps_existing_strategy(self, memory_log):
        Logger.initialize()
        assert Logger.log_storage_strategy is memory_log

    def test_initialize_uses_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "logs" / "run.txt"
        monkeypatch.setenv("XLINK_KMC_LOG_PATH", str(path))
        Logger.reset()
        Logger.initialize()
        assert isinstance(Logger.log_storage_strategy, LocalFileStrategy)
        assert "Logger initialized" in path.read_text()


class TestLocalFileStrategy:
    """Tests for the file-backed strategy."""

    def test_format(self, tmp_path):
        strategy = LocalFileStrategy(str(tmp_path / "sub" / "log.txt"))
        strategy.store_log("engine ready", "INFO", "2024-01-01 00:00:00")
        lines = (tmp_path / "sub" / "log.txt").read_text().splitlines()
        assert lines[0].startswith("LOG INITIALIZATION")
        assert lines[1] == "[2024-01-01 00:00:00] [INFO] engine ready"

    def test_flush_truncates(self, tmp_path):
        path = tmp_path / "log.txt"
        strategy = LocalFileStrategy(str(path))
        strategy.store_log("x", "INFO", "t")
        strategy.flush_logs()
        assert path.read_text().startswith("LOG FLUSHED")
        assert "[INFO]" not in path.read_text()


class TestMemoryStrategy:
    def test_filter_by_priority(self):
        strategy = MemoryStrategy()
        strategy.store_log("a", "INFO", "t")
        strategy.store_log("b", "DEBUG", "t")
        assert strategy.messages("DEBUG") == ["b"]
        assert strategy.messages() == ["a", "b"]
