"""Tests for the line protocol decoder."""
import pytest

from influx2prom.line_protocol import (
    BoolValue,
    FieldParseError,
    FloatValue,
    IntValue,
    LineProtocolError,
    OtherValue,
    Point,
    parse_points,
    precision_multiplier,
)

NOW = 1_700_000_000_123_456_789


def test_parse_single_point():
    points = parse_points(b"cpu,host=a value=1.5 1000000000", NOW)

    assert len(points) == 1
    point = points[0]
    assert point.measurement == "cpu"
    assert list(point.tags) == [("host", "a")]
    assert point.time == 1_000_000_000
    assert point.fields() == {"value": FloatValue(1.5)}


def test_field_types():
    line = 'm f=1.5,i=42i,neg=-7i,u=7u,b=true,s="hi there",e=-3e2,n=1 1'
    fields = parse_points(line, NOW)[0].fields()

    assert fields == {
        "f": FloatValue(1.5),
        "i": IntValue(42),
        "neg": IntValue(-7),
        "u": OtherValue(7, "unsigned"),
        "b": BoolValue(True),
        "s": OtherValue("hi there", "string"),
        "e": FloatValue(-300.0),
        "n": FloatValue(1.0),
    }


@pytest.mark.parametrize("raw, expected", [
    ("t", True), ("T", True), ("true", True), ("True", True), ("TRUE", True),
    ("f", False), ("F", False), ("false", False), ("False", False), ("FALSE", False),
])
def test_boolean_spellings(raw, expected):
    fields = parse_points(f"m b={raw} 1", NOW)[0].fields()
    assert fields["b"] == BoolValue(expected)


def test_field_order_preserved():
    fields = parse_points("m z=1,a=2,m=3 1", NOW)[0].fields()
    assert list(fields) == ["z", "a", "m"]


def test_as_float_coercion():
    assert FloatValue(2.5).as_float() == 2.5
    assert IntValue(42).as_float() == 42.0
    assert BoolValue(True).as_float() == 1.0
    assert BoolValue(False).as_float() == 0.0
    assert OtherValue("x", "string").as_float() is None
    assert OtherValue(7, "unsigned").as_float() is None


def test_escapes():
    line = r"my\ meas,ta\,g=v\ 1,k\=x=y f\=x=1,g\ h=2 5"
    point = parse_points(line, NOW)[0]

    assert point.measurement == "my meas"
    assert list(point.tags) == [("ta,g", "v 1"), ("k=x", "y")]
    assert point.fields() == {"f=x": FloatValue(1.0), "g h": FloatValue(2.0)}


def test_string_field_with_quotes_and_commas():
    point = parse_points(r'm s="a,\"b\" c",v=2 1', NOW)[0]
    assert point.fields() == {"s": OtherValue('a,"b" c', "string"), "v": FloatValue(2.0)}


def test_tag_order_preserved():
    point = parse_points("cpu,z=1,a=2 value=1 1", NOW)[0]
    assert list(point.tags) == [("z", "1"), ("a", "2")]


def test_default_time_truncated_to_precision():
    assert parse_points("cpu value=1", NOW)[0].time == NOW
    assert parse_points("cpu value=1", NOW, "s")[0].time == 1_700_000_000_000_000_000
    assert parse_points("cpu value=1", NOW, "ms")[0].time == 1_700_000_000_123_000_000


@pytest.mark.parametrize("precision, expected", [
    ("n", 5),
    ("ns", 5),
    ("u", 5_000),
    ("us", 5_000),
    ("ms", 5_000_000),
    ("s", 5_000_000_000),
    ("m", 300_000_000_000),
    ("h", 18_000_000_000_000),
])
def test_precision(precision, expected):
    assert parse_points("cpu value=1 5", NOW, precision)[0].time == expected


def test_unknown_precision():
    with pytest.raises(ValueError):
        precision_multiplier("d")
    with pytest.raises(ValueError):
        parse_points("cpu value=1", NOW, "d")


def test_comments_blank_lines_and_crlf():
    buf = b"# a comment\r\n\r\ncpu value=1 1\r\n   \n  # indented comment\nmem value=2 2\n"
    points = parse_points(buf, NOW)
    assert [p.measurement for p in points] == ["cpu", "mem"]
    assert [p.time for p in points] == [1, 2]


def test_empty_buffer():
    assert parse_points(b"", NOW) == []


def test_negative_timestamp():
    assert parse_points("cpu value=1 -5", NOW)[0].time == -5


@pytest.mark.parametrize("line, reason", [
    (",host=a value=1", "missing measurement"),
    ("cpu", "missing fields"),
    ("cpu,host=a", "missing fields"),
    ("cpu,host value=1", "missing tag value"),
    ("cpu,host= value=1", "missing tag value"),
    ("cpu,=a value=1", "missing tag key"),
    ("cpu,host=a,host=b value=1", "duplicate tags"),
    ("cpu =1", "missing field key"),
    ("cpu value= 1", "missing field value"),
    ("cpu value", "missing field value"),
    ("cpu value=abc", "invalid field value"),
    ("cpu value=NaN", "invalid field value"),
    ("cpu value=99999999999999999999i", "out of range"),
    ("cpu value=-1u", "invalid field value"),
    ('cpu s="open 1', "unbalanced quotes"),
    ("cpu value=1 abc", "invalid timestamp"),
    ("cpu value=1 99999999999999999999", "time outside range"),
    ("cpu value=1 1 extra", "unexpected trailing data"),
])
def test_invalid_lines(line, reason):
    with pytest.raises(LineProtocolError) as excinfo:
        parse_points(line, NOW)
    assert reason in str(excinfo.value)


def test_errors_reported_for_every_line():
    buf = b"cpu value=1 1\ncpu\ncpu value=2 2\ncpu value=abc 3\n"
    with pytest.raises(LineProtocolError) as excinfo:
        parse_points(buf, NOW)

    message = str(excinfo.value)
    assert "line 2: missing fields" in message
    assert "line 4: invalid field value" in message
    assert "line 1" not in message


def test_invalid_utf8():
    with pytest.raises(LineProtocolError):
        parse_points(b"cpu,host=\xff value=1 1", NOW)


def test_point_fields_error():
    point = Point("cpu", (), "value=bogus", 0)
    with pytest.raises(FieldParseError):
        point.fields()


def test_field_parse_error_is_line_protocol_error():
    assert issubclass(FieldParseError, LineProtocolError)


def test_newline_inside_string_field():
    buf = b'log msg="line1\nline2",value=3 1000000000\ncpu value=1 1'
    points = parse_points(buf, NOW)

    assert [p.measurement for p in points] == ["log", "cpu"]
    assert points[0].fields() == {
        "msg": OtherValue("line1\nline2", "string"),
        "value": FloatValue(3.0),
    }
    assert points[1].time == 1


def test_line_numbers_after_multiline_string():
    buf = b'log msg="a\nb\nc" 1\ncpu\n'
    with pytest.raises(LineProtocolError) as excinfo:
        parse_points(buf, NOW)
    assert "line 4: missing fields" in str(excinfo.value)


def test_quotes_in_comments_and_tags_do_not_join_lines():
    buf = b'# say "hi\ncpu,t="a value=1 1\nmem value=2 2\n'
    points = parse_points(buf, NOW)

    assert [p.measurement for p in points] == ["cpu", "mem"]
    assert list(points[0].tags) == [("t", '"a')]
