import logging

from utils.logging_utils import Timer, truncate_for_log


def test_timer_logs_on_success(caplog):
    log = logging.getLogger("test.timer")
    with caplog.at_level(logging.INFO, logger="test.timer"):
        with Timer("Stage", log) as timer:
            assert timer.duration_ms >= 0

    assert timer.duration is not None
    assert "Stage completed in" in caplog.text


def test_timer_stays_quiet_on_failure(caplog):
    log = logging.getLogger("test.timer")
    with caplog.at_level(logging.INFO, logger="test.timer"):
        try:
            with Timer("Stage", log):
                raise ValueError("boom")
        except ValueError:
            pass

    assert "completed" not in caplog.text


def test_truncate_for_log():
    assert truncate_for_log(None) == ""
    assert truncate_for_log("short") == "short"
    assert truncate_for_log("x" * 300, limit=10) == "xxxxxxxxxx... (300 chars)"
