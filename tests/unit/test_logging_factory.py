"""Tests for stagecache.utils.logging_factory module."""

import logging

from stagecache.utils import LoggingFactory, get_logger
from stagecache.utils.logging_factory import ROOT_LOGGER


class TestLoggingFactory:
    """Tests for LoggingFactory initialization and reset."""

    def setup_method(self):
        LoggingFactory.reset()

    def teardown_method(self):
        LoggingFactory.reset()

    def test_initialize_console_only(self):
        LoggingFactory.initialize()

        root = logging.getLogger(ROOT_LOGGER)
        assert LoggingFactory.is_initialized()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.StreamHandler)
        assert LoggingFactory.log_file() is None
        assert root.level == logging.INFO

    def test_initialize_with_log_dir(self, tmp_path):
        log_dir = tmp_path / "logs"
        LoggingFactory.initialize(log_dir=log_dir, level=logging.DEBUG)

        root = logging.getLogger(ROOT_LOGGER)
        assert len(root.handlers) == 2
        assert root.level == logging.DEBUG
        assert (log_dir / "stagecache.log").exists()
        assert LoggingFactory._log_dir == log_dir
        assert LoggingFactory.log_file() == log_dir / "stagecache.log"

    def test_records_written_to_file(self, tmp_path):
        LoggingFactory.initialize(log_dir=tmp_path, format_string="%(levelname)s %(message)s")

        logging.getLogger("stagecache.cache.storage").warning("disk nearly full")
        for handler in logging.getLogger(ROOT_LOGGER).handlers:
            handler.flush()

        assert "WARNING disk nearly full" in (tmp_path / "stagecache.log").read_text()

    def test_initialize_only_once(self, tmp_path):
        LoggingFactory.initialize()
        LoggingFactory.initialize(log_dir=tmp_path)

        assert len(logging.getLogger(ROOT_LOGGER).handlers) == 1
        assert not (tmp_path / "stagecache.log").exists()
        assert LoggingFactory.log_file() is None

    def test_get_logger_initializes(self):
        logger = get_logger("stagecache.test")

        assert logger.name == "stagecache.test"
        assert LoggingFactory.is_initialized()

    def test_set_level(self):
        LoggingFactory.set_level("stagecache.cache", logging.ERROR)
        assert logging.getLogger("stagecache.cache").level == logging.ERROR
        logging.getLogger("stagecache.cache").setLevel(logging.NOTSET)

    def test_reset_removes_handlers(self, tmp_path):
        LoggingFactory.initialize(log_dir=tmp_path)
        LoggingFactory.reset()

        assert not LoggingFactory.is_initialized()
        assert logging.getLogger(ROOT_LOGGER).handlers == []
        assert LoggingFactory.log_file() is None
