import json
import logging
import logging.handlers
import sys

import pytest

from webtrawl.utils.config import LoggingConfig
from webtrawl.utils.logger import (
    JSONFormatter, PerformanceFilter, get_crawler_logger, setup_logging, verbosity_to_level
)


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def captured():
    logger = logging.getLogger("webtrawl.tests.logger")
    handler = ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield handler
    logger.removeHandler(handler)


@pytest.mark.parametrize("verbosity, level", [(0, "WARNING"), (1, "INFO"), (2, "DEBUG"), (5, "DEBUG")])
def test_verbosity_to_level(verbosity, level):
    assert verbosity_to_level(verbosity) == level


def test_adapter_prefixes_worker_and_json_carries_context(captured):
    logger = get_crawler_logger("webtrawl.tests.logger", worker="worker-1")

    logger.info("fetched", extra={"url": "https://example.test/"})

    [record] = captured.records
    assert record.getMessage() == "[worker-1] fetched"
    entry = json.loads(JSONFormatter().format(record))
    assert entry["level"] == "INFO"
    assert entry["msg"] == "[worker-1] fetched"
    assert entry["worker"] == "worker-1"
    assert entry["url"] == "https://example.test/"


def test_json_formatter_includes_exception(captured):
    logger = logging.getLogger("webtrawl.tests.logger")
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("failed")

    entry = json.loads(JSONFormatter().format(captured.records[0]))
    assert "RuntimeError: boom" in entry["exc"]
    assert "worker" not in entry


def test_performance_filter_drops_library_noise():
    noise = logging.LogRecord("aiohttp.access", logging.INFO, __file__, 1, "GET /", None, None)
    ours = logging.LogRecord("webtrawl.crawler", logging.INFO, __file__, 1, "fetched", None, None)

    log_filter = PerformanceFilter()

    assert not log_filter.filter(noise)
    assert log_filter.filter(ours)


def test_setup_logging_uses_stderr_and_rotating_file(root_logger, tmp_path):
    log_file = tmp_path / "logs" / "crawl.log"

    setup_logging(LoggingConfig(level="INFO", file=str(log_file), json=True))

    stream_handlers = [h for h in root_logger.handlers if type(h) is logging.StreamHandler]
    file_handlers = [h for h in root_logger.handlers
                     if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert len(stream_handlers) == 1
    assert stream_handlers[0].stream is sys.stderr
    assert len(file_handlers) == 1
    assert root_logger.level == logging.INFO
    assert all(isinstance(h.formatter, JSONFormatter) for h in root_logger.handlers)

    logging.getLogger("webtrawl.tests").info("written to file")
    file_handlers[0].flush()
    assert "written to file" in log_file.read_text()


def test_setup_logging_replaces_previous_handlers(root_logger):
    setup_logging(LoggingConfig())
    setup_logging(LoggingConfig())

    assert len(root_logger.handlers) == 1
    assert root_logger.level == logging.WARNING
