from __future__ import annotations

import logging
from io import StringIO

import edu_import.logging.init as log_init
from edu_import.logging.init import LabeledFormatter, SUMMARY_LEVEL, get_logger, set_debug, setup_logging


def test_setup_logging_creates_logger_with_labeled_formatter():
    logger = setup_logging()
    assert logger.name == "edu_import"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    handler = logger.handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    assert isinstance(handler.formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent():
    first = setup_logging()
    second = setup_logging()
    assert first is second
    assert len(second.handlers) == 1


def test_logging_labeled_prefixes():
    captured_output = StringIO()
    logger = logging.getLogger("test_edu_import_labels")
    logger.setLevel(logging.INFO)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    handler = logging.StreamHandler(captured_output)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    logger.info("Test info message")
    logger.warning("Test warning message")
    logger.error("Test error message")
    logger.log(SUMMARY_LEVEL, "Test summary message")

    lines = captured_output.getvalue().strip().split("\n")
    assert lines == [
        "INFO Test info message",
        "WARN Test warning message",
        "ERROR Test error message",
        "SUMMARY Test summary message",
    ]


def test_module_loggers_reach_the_app_handler(capsys):
    setup_logging()
    logging.getLogger("edu_import.services.executor").warning("row 3: skipped")
    assert "WARN row 3: skipped" in capsys.readouterr().out


def test_get_logger_sets_up_on_first_use():
    log_init.reset_logging()
    logger = get_logger()
    assert logger is setup_logging()


def test_set_debug_lowers_levels(capsys):
    logger = setup_logging()
    set_debug(True)
    assert logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in logger.handlers)
    logger.debug("visible now")
    assert "DEBUG visible now" in capsys.readouterr().out
    set_debug(False)
    assert logger.level == logging.INFO


def test_log_summary(capsys):
    setup_logging()
    log_init.log_summary("entity=staff mode=create")
    assert "SUMMARY entity=staff mode=create" in capsys.readouterr().out


def test_custom_stream_and_exception_text():
    buf = StringIO()
    logger = setup_logging(stream=buf)
    try:
        raise ValueError("bad row")
    except ValueError:
        logger.exception("apply aborted")
    out = buf.getvalue()
    assert out.startswith("ERROR apply aborted\n")
    assert "ValueError: bad row" in out
