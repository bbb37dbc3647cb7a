# logconv/tests/test_logger.py
import io
import json
import logging

import pytest
from prometheus_client import REGISTRY

from logconv import logger as logger_module
from logconv.context import ContextStore
from logconv.logger import initialize
from logconv.redact import REDACTED

_handles = []


def _init(**options):
    log = initialize(**options)
    _handles.append(log)
    return log


@pytest.fixture(autouse=True)
def _close_loggers():
    yield
    while _handles:
        _handles.pop().close()


def _capture(log):
    seen = []
    log.on_message(seen.append)
    return seen


def test_string_message():
    log = _init(test=True)
    seen = _capture(log)
    log.info("Some message")
    assert len(seen) == 1
    rec = seen[0]
    assert rec["level"] == 30
    assert rec["severity"] == "info"
    assert rec["msg"] == "Some message"
    assert isinstance(rec["time"], int)
    assert "ctx" not in rec


def test_scalar_messages():
    log = _init(test=True)
    seen = _capture(log)
    log.info(1)
    log.info(12345678901234567890)
    log.info(True)
    assert [r["msg"] for r in seen] == [1, "12345678901234567890", True]


def test_message_and_context():
    log = _init(test=True)
    seen = _capture(log)
    log.warn("Some message", {"foo": "bar"})
    assert seen[0]["level"] == 40
    assert seen[0]["ctx"] == {"foo": "bar"}


def test_error_argument():
    log = _init(test=True)
    seen = _capture(log)
    err = ValueError("Oh Noes!")
    err.wibble = 123
    log.error(err)
    rec = seen[0]
    assert rec["level"] == 50
    assert rec["msg"] == "Oh Noes!"
    assert rec["ctx"]["err"]["type"] == "ValueError"
    assert rec["ctx"]["err"]["wibble"] == 123


def test_empty_call_logs_diagnostic():
    log = _init(test=True)
    seen = _capture(log)
    log.info()
    rec = seen[0]
    assert rec["msg"] == "Empty log message"
    assert rec["ctx"]["err"]["type"] == "EmptyLogMessageError"
    assert "test_logger.py" in rec["ctx"]["err"]["stack"]


def test_ambient_context_from_scope():
    log = _init(test=True)
    seen = _capture(log)
    with log.store.scope({"tracer": 123}):
        log.info("Some message", {"foo": "bar"})
    log.info("outside")
    assert seen[0]["ctx"] == {"tracer": 123, "foo": "bar"}
    assert "ctx" not in seen[1]


def test_injected_store_and_precedence():
    store = ContextStore()
    log = _init(test=True, ambient_context_store=store)
    assert log.store is store
    seen = _capture(log)
    store.run({"foo": "ambient", "tracer": 1}, log.info, "m", {"foo": "explicit"})
    assert seen[0]["ctx"] == {"foo": "explicit", "tracer": 1}


def test_child_bindings_sit_between_ambient_and_explicit():
    log = _init(test=True)
    seen = _capture(log)
    child = log.child(component="db", foo="child")
    with log.store.scope({"foo": "ambient", "req_id": "r1"}):
        child.info("m")
        child.info("m", {"foo": "explicit"})
    assert seen[0]["ctx"] == {"foo": "child", "req_id": "r1", "component": "db"}
    assert seen[1]["ctx"]["foo"] == "explicit"


def test_circular_context():
    log = _init(test=True)
    seen = _capture(log)
    context = {"foo": "bar"}
    context["context"] = context
    log.info("Some message", context)
    assert seen[0]["ctx"] == {"foo": "bar", "context": {"foo": "bar", "context": "[Circular]"}}


def test_unserializable_values_are_dropped():
    log = _init(test=True)
    seen = _capture(log)
    log.info("Some message", {"foo": "bar", "fn": lambda: None})
    assert seen[0]["ctx"] == {"foo": "bar"}


def test_redaction():
    log = _init(test=True, redact=["card.number"])
    seen = _capture(log)
    log.info("m", {"password": "p", "card": {"number": "4111", "brand": "visa"}})
    assert seen[0]["ctx"] == {"password": REDACTED, "card": {"number": REDACTED, "brand": "visa"}}


def test_oversize_record():
    log = _init(test=True, max_size=500)
    seen = _capture(log)
    log.info("m", {"blob": "x" * 1000})
    rec = seen[0]
    assert rec["msg"].startswith("Log record size of ")
    assert rec["msg"].endswith("exceeds maximum of 500 bytes")
    assert rec["ctx"]["err"]["type"] == "OversizeLogRecordError"


def test_levels_and_threshold():
    log = _init(test={"level": "warn"})
    seen = _capture(log)
    log.trace("t")
    log.debug("d")
    log.info("i")
    log.warn("w")
    log.error("e")
    log.fatal("f")
    assert [r["level"] for r in seen] == [40, 50, 60]
    assert not log.is_enabled_for("info")
    assert log.is_enabled_for("fatal")


def test_trace_level_is_delivered():
    log = _init(test={"level": "trace"})
    seen = _capture(log)
    log.trace("t")
    assert seen[0]["level"] == 10
    assert seen[0]["severity"] == "trace"


def test_unknown_severity_falls_back_to_info():
    log = _init(test=True)
    seen = _capture(log)
    log.log("loud", "m")
    assert seen[0]["severity"] == "info"


def test_once_fires_a_single_time():
    log = _init(test=True)
    seen = []
    log.once(seen.append)
    log.info("first")
    log.info("second")
    assert [r["msg"] for r in seen] == ["first"]


def test_unsubscribe():
    log = _init(test=True)
    seen = []
    unsubscribe = log.on_message(seen.append)
    log.info("first")
    unsubscribe()
    log.info("second")
    assert len(seen) == 1


def test_failing_subscriber_does_not_reach_caller(monkeypatch):
    monkeypatch.setattr("logging.raiseExceptions", False)
    log = _init(test=True)
    seen = []

    def boom(_):
        raise RuntimeError("subscriber failed")

    log.on_message(boom)
    log.on_message(seen.append)
    log.info("still delivered")
    assert seen[0]["msg"] == "still delivered"


def test_on_message_requires_test_sink():
    log = _init(machine={"destination": io.StringIO()}, sync=True)
    with pytest.raises(RuntimeError):
        log.on_message(lambda r: None)
    with pytest.raises(RuntimeError):
        log.once(lambda r: None)


def test_machine_sink_writes_json_lines(tmp_path):
    path = tmp_path / "logs" / "app.log"
    log = _init(machine={"destination": str(path)}, sync=True)
    log.info("Some message", {"foo": "bar"})
    log.close()
    lines = path.read_text(encoding="utf-8").splitlines()
    rec = json.loads(lines[0])
    assert rec["level"] == 30
    assert rec["severity"] == "info"
    assert rec["msg"] == "Some message"
    assert rec["ctx"] == {"foo": "bar"}


def test_async_machine_sink_flushes(tmp_path):
    path = tmp_path / "app.log"
    log = _init(machine={"destination": str(path)})
    for i in range(5):
        log.info("m", {"i": i})
    log.flush()
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(ln)["ctx"]["i"] for ln in lines] == list(range(5))


def test_human_sink_format():
    out = io.StringIO()
    log = _init(human={"destination": out}, sync=True)
    log.info("Some message", {"foo": "bar"})
    lines = out.getvalue().splitlines()
    assert lines[0] == "\x1b[32mINFO\x1b[39m: \x1b[36mSome message\x1b[39m"
    assert lines[1] == "    ctx: {"
    assert lines[2] == '      "foo": "bar"'
    assert lines[3] == "    }"


def test_human_sink_without_colors():
    out = io.StringIO()
    log = _init(human={"destination": out, "colorize": False}, sync=True)
    log.error("boom")
    assert out.getvalue() == "ERROR: boom\n"


def test_sinks_filter_independently():
    machine, human = io.StringIO(), io.StringIO()
    log = _init(
        machine={"destination": machine, "level": "error"},
        human={"destination": human, "colorize": False, "level": "debug"},
        sync=True,
    )
    log.debug("d")
    log.error("e")
    assert [json.loads(ln)["msg"] for ln in machine.getvalue().splitlines()] == ["e"]
    assert human.getvalue() == "DEBUG: d\nERROR: e\n"


def test_reinitialize_replaces_sinks():
    first = _init(test=True)
    old = _capture(first)
    second = _init(test=True)
    new = _capture(second)
    second.info("m")
    assert old == []
    assert len(new) == 1


def test_module_level_handle_tracks_latest():
    log = _init(test=True)
    assert logger_module.logger is log
    assert logger_module.store is log.store


def test_metrics_count_records():
    log = _init(test=True)

    def sample(name, labels):
        return REGISTRY.get_sample_value(name, labels) or 0.0

    before = sample("logconv_records_total", {"severity": "warn"})
    empty_before = sample("logconv_degraded_records_total", {"reason": "empty"})
    log.warn("w")
    log.warn()
    assert sample("logconv_records_total", {"severity": "warn"}) == before + 2
    assert sample("logconv_degraded_records_total", {"reason": "empty"}) == empty_before + 1


def test_internal_module_logs_stay_out_of_sinks():
    out = io.StringIO()
    log = _init(machine={"destination": out}, sync=True)
    logging.getLogger("logconv.config").warning("internal warning")
    logging.getLogger("logconv.logger").error("internal error")
    log.info("user record")
    assert [json.loads(ln)["msg"] for ln in out.getvalue().splitlines()] == ["user record"]


def test_initialize_does_not_register_exit_hooks(monkeypatch):
    registered = []
    monkeypatch.setattr(logger_module.atexit, "register", registered.append)
    _init(test=True)
    _init(test=True)
    assert registered == []


def test_exit_hook_closes_installed_sinks(tmp_path):
    log = _init(machine={"destination": str(tmp_path / "app.log")})
    sinks = log._core.sinks
    assert sinks.listener is not None
    logger_module._close_installed()
    assert sinks.listener is None
    assert log.config.name not in logger_module._installed


def test_close_forgets_installed_sinks():
    log = _init(test=True)
    assert log.config.name in logger_module._installed
    log.close()
    assert log.config.name not in logger_module._installed


def test_string_like_arguments():
    log = _init(test=True)
    seen = _capture(log)
    log.info(b"payload")
    log.info("blank context", "  ")
    assert seen[0]["msg"] == "payload"
    assert seen[1]["msg"] == "blank context"
    assert "ctx" not in seen[1]
