"""
Tests for logger functionality.
"""

import threading

import pytest

from sddl.logger import StructuredLogger, get_logger, reset_logger


class TestStructuredLogger:
    """Test structured logging functionality."""

    def test_logger_creation(self):
        """Logger should be created with zeroed metrics."""
        logger = StructuredLogger(name="test", level="INFO", enable_console=False)

        assert logger.logger.name == "test"
        assert logger.metrics["resolutions_requested"] == 0
        assert logger.logger.handlers == []

    def test_log_methods(self):
        """All log level methods should work."""
        logger = StructuredLogger(name="test", enable_console=False)

        # Should not raise exceptions
        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")
        logger.critical("Critical message")

    def test_context_written_as_json(self, tmp_path):
        """Context keyword arguments are appended as JSON."""
        logger = StructuredLogger(
            name="test-context",
            log_dir=tmp_path,
            enable_file=True,
            enable_console=False,
        )

        logger.info("Resolution finished", identifier="abcd1234", path=tmp_path)

        content = next(tmp_path.glob("sddl_*.log")).read_text()
        assert 'Resolution finished | Context: {"identifier": "abcd1234", "path": ' in content

    def test_resolution_metrics(self):
        logger = StructuredLogger(name="test", enable_console=False)

        logger.record_resolution_requested()
        logger.record_resolution_requested()
        logger.record_resolution_requested()
        logger.record_resolution_accepted()
        logger.record_resolution_dropped("in_flight")
        logger.record_resolution_dropped("in_flight")
        logger.record_identifier_source("clipboard")
        logger.record_fallback()

        metrics = logger.get_metrics()

        assert metrics["resolutions_requested"] == 3
        assert metrics["resolutions_accepted"] == 1
        assert metrics["resolutions_dropped"] == {"in_flight": 2}
        assert metrics["identifier_sources"] == {"clipboard": 1}
        assert metrics["fallbacks"] == 1

    def test_fetch_metrics(self):
        logger = StructuredLogger(name="test", enable_console=False)

        logger.record_fetch_attempt("by_id")
        logger.record_fetch_success("by_id")
        logger.record_fetch_attempt("try")
        logger.record_fetch_failure("try", "ReadTimeout")

        metrics = logger.get_metrics()

        assert metrics["endpoint_success_rate"]["by_id"] == {"attempts": 1, "successes": 1, "success_rate": 1.0}
        assert metrics["endpoint_success_rate"]["try"]["success_rate"] == 0.0
        assert metrics["errors_by_type"] == {"ReadTimeout": 1}

    def test_success_rate_calculation(self):
        """Success rate should be calculated correctly."""
        logger = StructuredLogger(name="test", enable_console=False)

        # 3 attempts, 2 successes = 66.7% success rate
        for _ in range(3):
            logger.record_fetch_attempt("try")

        logger.record_fetch_success("try")
        logger.record_fetch_success("try")

        success_rate = logger.get_metrics()["endpoint_success_rate"]["try"]["success_rate"]

        assert success_rate == pytest.approx(0.667, rel=0.01)

    def test_get_metrics_is_snapshot(self):
        logger = StructuredLogger(name="test", enable_console=False)
        logger.record_identifier_source("url")

        snapshot = logger.get_metrics()
        snapshot["identifier_sources"]["url"] = 99

        assert logger.get_metrics()["identifier_sources"] == {"url": 1}

    def test_concurrent_recording(self):
        """Counters stay exact when io and scheduler threads record together."""
        logger = StructuredLogger(name="test", enable_console=False)

        def work():
            for _ in range(500):
                logger.record_resolution_requested()
                logger.record_fetch_attempt("by_id")

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        metrics = logger.get_metrics()
        assert metrics["resolutions_requested"] == 2000
        assert metrics["endpoint_success_rate"]["by_id"]["attempts"] == 2000

    def test_log_file_creation(self, tmp_path):
        """Log file should be created in specified directory."""
        logger = StructuredLogger(
            name="test-file",
            log_dir=tmp_path,
            enable_file=True,
            enable_console=False,
        )

        logger.info("Test message")

        # Check that a log file was created
        log_files = list(tmp_path.glob("sddl_*.log"))
        assert len(log_files) == 1

        # Check that message was written
        log_content = log_files[0].read_text()
        assert "Test message" in log_content

    def test_no_file_by_default(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        StructuredLogger(name="test", enable_console=False).info("nothing on disk")
        assert list(tmp_path.iterdir()) == []

    def test_metrics_summary(self, capsys):
        logger = StructuredLogger(name="test-summary")
        logger.record_resolution_requested()
        logger.record_resolution_accepted()
        logger.record_fetch_attempt("by_id")
        logger.record_fetch_success("by_id")

        logger.log_metrics_summary()

        out = capsys.readouterr().out
        assert "Resolutions: 1/1 accepted" in out
        assert "by_id: 1/1 (100.0%)" in out
        assert "Fallbacks: 0" in out


class TestGlobalLogger:
    """Test global logger singleton."""

    def test_get_logger_singleton(self):
        """get_logger should return same instance."""
        reset_logger()  # Start fresh

        logger1 = get_logger(enable_console=False)
        logger2 = get_logger()

        assert logger1 is logger2

    def test_reset_logger(self):
        """reset_logger should create new instance."""
        reset_logger()

        logger1 = get_logger(enable_console=False)
        logger1.record_resolution_requested()

        reset_logger()

        logger2 = get_logger(enable_console=False)

        # Should be different instance with fresh metrics
        assert logger2 is not logger1
        assert logger2.metrics["resolutions_requested"] == 0
