import json

import pytest

from ncps.otellog import (
    KeyValue,
    LogRecord,
    OtelWriter,
    Severity,
    Value,
    convert_level,
    key_values_for_map,
    values_for_slice,
)


def test_map_with_bool():
    assert key_values_for_map({"a": True}) == [KeyValue("a", Value.of_bool(True))]


def test_map_with_string():
    assert key_values_for_map({"a": "test"}) == [KeyValue("a", Value.of_str("test"))]


def test_map_with_float():
    assert key_values_for_map({"a": 10.5}) == [KeyValue("a", Value.of_float(10.5))]


def test_map_with_integral_float_becomes_int():
    assert key_values_for_map({"a": 10.0}) == [KeyValue("a", Value.of_int(10))]


def test_map_with_slice():
    kvs = key_values_for_map({"a": ["b"]})
    assert kvs == [KeyValue("a", Value.of_slice(Value.of_str("b")))]


def test_map_with_map():
    kvs = key_values_for_map({"a": {"b": "c"}})
    assert kvs == [KeyValue("a", Value.of_map(KeyValue("b", Value.of_str("c"))))]


def test_map_with_null_raises():
    with pytest.raises(TypeError):
        key_values_for_map({"a": None})


def test_slice_of_bool():
    assert values_for_slice([True, False]) == [
        Value.of_bool(True),
        Value.of_bool(False),
    ]


def test_slice_of_float():
    assert values_for_slice([10.5, 20.5]) == [
        Value.of_float(10.5),
        Value.of_float(20.5),
    ]


def test_slice_of_strings():
    assert values_for_slice(["a", "b"]) == [Value.of_str("a"), Value.of_str("b")]


def test_slice_of_maps():
    assert values_for_slice([{"a": "c"}, {"b": True}]) == [
        Value.of_map(KeyValue("a", Value.of_str("c"))),
        Value.of_map(KeyValue("b", Value.of_bool(True))),
    ]


@pytest.mark.parametrize(
    "level, severity",
    [
        ("trace", Severity.TRACE),
        ("debug", Severity.DEBUG),
        ("info", Severity.INFO),
        ("warn", Severity.WARN),
        ("error", Severity.ERROR),
        ("fatal", Severity.FATAL),
        ("panic", Severity.FATAL),
        ("", Severity.INFO),
        ("disabled", Severity.INFO),
    ],
)
def test_convert_level(level, severity):
    assert convert_level(level) == severity


def test_write_emits_record():
    records: list[LogRecord] = []
    writer = OtelWriter(records.append)
    line = json.dumps({"level": "warn", "message": "hello", "count": 3}).encode()

    assert writer.write(line) == len(line)
    assert len(records) == 1
    record = records[0]
    assert record.severity == Severity.WARN
    assert record.severity_text == "warn"
    assert record.body == Value.of_str("hello")
    assert record.attributes == [KeyValue("count", Value.of_int(3))]


def test_write_unknown_level_is_info():
    records: list[LogRecord] = []
    OtelWriter(records.append).write_level("debug", b'{"level": "loud"}')
    assert records[0].severity == Severity.INFO
    assert records[0].severity_text == "info"
    assert records[0].body is None


def test_write_invalid_json():
    writer = OtelWriter(lambda record: None)
    with pytest.raises(ValueError):
        writer.write(b"not json")