from __future__ import annotations

import logging

from highlightq.observability.logging import SecretMaskFilter, get_logger, mask_secret


def test_mask_secret_keeps_prefix():
    assert mask_secret("sk-abcdefgh") == "sk-a*******"
    assert mask_secret("abc") == "***"


def test_filter_rewrites_records_containing_secret():
    mask = SecretMaskFilter()
    mask.add("sk-live-123456")
    record = logging.LogRecord(
        name="t",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="calling with %s",
        args=("sk-live-123456",),
        exc_info=None,
    )

    assert mask.filter(record) is True
    assert "sk-live-123456" not in record.getMessage()
    assert record.getMessage().startswith("calling with sk-l")


def test_filter_leaves_clean_records_alone():
    mask = SecretMaskFilter()
    mask.add("sk-live-123456")
    record = logging.LogRecord("t", logging.INFO, __file__, 1, "hello %s", ("world",), None)

    mask.filter(record)

    assert record.args == ("world",)


def test_get_logger_attaches_single_handler():
    get_logger("highlightq.a")
    handlers_before = len(logging.getLogger().handlers)
    get_logger("highlightq.b")
    assert len(logging.getLogger().handlers) == handlers_before
