"""
Tests for logging configuration
"""
import json
import logging

import structlog

from vad_segmenter.config.logging_config import SegmenterJsonFormatter, setup_logging


class TestLogging:
    """Test cases for logging setup"""

    def test_json_formatter_fields(self):
        formatter = SegmenterJsonFormatter('%(message)s')
        record = logging.LogRecord("vad_segmenter.core", logging.WARNING, __file__, 1, "clip dropped", None, None)

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "clip dropped"
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "vad_segmenter.core"
        assert payload["service"] == "vad-segmenter"
        assert "timestamp" in payload

    def test_setup_writes_log_file(self, tmp_path):
        setup_logging(level="DEBUG", json_format=False, log_file="run.log", log_dir=str(tmp_path))

        logging.getLogger("vad_segmenter.test").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "hello" in (tmp_path / "run.log").read_text()

        for handler in logging.getLogger().handlers:
            handler.close()
        logging.getLogger().handlers = []
        structlog.reset_defaults()
