import logging

from bptflistings.infrastructure.observability import (
    Timer,
    format_prometheus,
    get_metrics_summary,
    get_registry,
    log_context,
    record_flush,
    record_listing_action,
)
from bptflistings.infrastructure.observability.logging import ContextualFormatter


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("bptflistings.test", logging.INFO, __file__, 1, message, None, None)


def test_log_context_fields_are_appended() -> None:
    formatter = ContextualFormatter("%(message)s")
    with log_context(flush_pass=2):
        with log_context(identity="sell:1"):
            assert formatter.format(_record("Created")) == "Created [flush_pass=2 identity=sell:1]"
        assert formatter.format(_record("Created")) == "Created [flush_pass=2]"
    assert formatter.format(_record("Created")) == "Created"


def test_formatter_leaves_record_untouched() -> None:
    formatter = ContextualFormatter("%(message)s")
    record = _record("Removed")
    with log_context(phase="delete"):
        formatter.format(record)
    assert record.msg == "Removed"


def test_counters_and_prometheus_output() -> None:
    record_listing_action("create", "created")
    record_listing_action("create", "created")
    record_flush("ok", 0.5)

    summary = get_metrics_summary()
    assert summary["counters"]["bptf_listing_actions_total"] == {"action=create,outcome=created": 2.0}
    text = format_prometheus()
    assert "# TYPE bptf_flushes_total counter" in text
    assert 'bptf_flushes_total{status="ok"} 1.0' in text
    assert 'bptf_flush_duration_seconds_count{status="ok"} 1' in text


def test_timer_observes_duration() -> None:
    with Timer("bptf_test_seconds", labels={"step": "x"}):
        pass
    stats = get_registry().histogram("bptf_test_seconds").get_stats({"step": "x"})
    assert stats["count"] == 1
