import json
import logging

from config.logging import JsonFormatter, SamplingFilter


def _record(msg, level=logging.INFO, **extra):
    record = logging.LogRecord("lakshmi.orders", level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extra():
    line = JsonFormatter().format(_record("order_status_changed", order_id=7, status_to="confirmed"))
    payload = json.loads(line)
    assert payload["event"] == "order_status_changed"
    assert payload["logger"] == "lakshmi.orders"
    assert payload["order_id"] == 7
    assert payload["status_to"] == "confirmed"


def test_json_formatter_stringifies_unserializable_values():
    payload = json.loads(JsonFormatter().format(_record("x", actor=object())))
    assert payload["actor"].startswith("<object object")


def test_sampling_never_drops_transition_events():
    sampler = SamplingFilter(rate=0.0, allow_events=["order_status_changed", "payment_status_changed"])
    assert sampler.filter(_record("order_status_changed")) is True
    assert sampler.filter(_record("payment_status_changed")) is True
    assert sampler.filter(_record("order_created")) is False


def test_sampling_ignores_other_levels():
    sampler = SamplingFilter(rate=0.0)
    assert sampler.filter(_record("payment_verification_failed", level=logging.WARNING)) is True
