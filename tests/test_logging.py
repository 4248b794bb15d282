import json
import logging

from mirrorgate.logging import CustomJSONFormatter, setup_logging


def test_setup_logging_adds_one_handler():
    setup_logging()
    setup_logging()
    logger = logging.getLogger("mirrorgate")
    handlers = [h for h in logger.handlers if isinstance(h.formatter, CustomJSONFormatter)]
    assert len(handlers) == 1


def test_formatter_includes_extra_fields():
    record = logging.LogRecord("mirrorgate", logging.INFO, __file__, 1, "hello", (), None)
    record.correlation_id = "abcd-1234"
    data = json.loads(CustomJSONFormatter().format(record))
    assert data["message"] == "hello"
    assert data["level"] == "INFO"
    assert data["correlation_id"] == "abcd-1234"
