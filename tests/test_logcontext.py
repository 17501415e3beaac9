import contextvars
import dataclasses
import json

import pytest

from annego import logger
from annego import logcontext as lc
from annego.logcontext import Field, FieldType, LogContent
from annego.logger import LogLevel


@pytest.fixture(autouse=True)
def restore_level():
    old = logger.get_log_level()
    yield
    logger.set_log_level(old)


@dataclasses.dataclass
class TestObject:
    A: int
    S: str


def test_log_context_is_json():
    obj = TestObject(A=100, S="test")
    ctx = LogContent(
        lc.integer("int", 123),
        lc.float32("float", 10.0),
        lc.text("str", "hello"),
        lc.object_field("object", obj),
    )
    parsed = json.loads(str(ctx))
    assert parsed["int"] == 123
    assert parsed["float"] == 10.0
    assert parsed["str"] == "hello"
    assert parsed["object"] == {"A": 100, "S": "test"}


def test_copy():
    ctx1 = LogContent(
        lc.integer("int", 123),
        lc.float32("float", 10.0),
        lc.text("str", "hello"),
    )
    ctx2 = ctx1.copy()
    for a, b in zip(ctx1.fields, ctx2.fields):
        assert str(a) == str(b)
    assert len(ctx2) == 3

    ctx2.append(lc.integer("int", 100))
    assert str(ctx1.fields[0]) == '"int":123'
    assert str(ctx2.fields[0]) == '"int":100'


def test_skip():
    ctx = LogContent(lc.text("a", "a"), lc.integer("b", 1), lc.skip())
    parsed = json.loads(str(ctx))
    assert len(parsed) == 2


def test_append_replaces_in_place():
    ctx = LogContent(lc.integer("a", 1), lc.integer("b", 2))
    ctx.append(lc.integer("a", 3), lc.integer("c", 4))
    assert str(ctx) == '{"a":3,"b":2,"c":4}'


def test_empty_content():
    assert str(LogContent()) == "{}"


def test_named_error_and_error_field():
    assert lc.named_error("e", None).ftype is FieldType.SKIP
    assert str(lc.error_field(EOFError("EOF"))) == '"error":"EOF"'
    assert str(lc.named_error("why", ValueError("bad"))) == '"why":"bad"'


def test_float_formatting():
    assert str(lc.float32("float", 10.0)) == '"float":10'
    assert str(lc.float64("f", 0.1)) == '"f":0.1'
    assert str(lc.float64("f", float("inf"))) == '"f":+Inf'


def test_unsigned_and_bool():
    assert str(lc.unsigned("u", 2**64 - 1)) == '"u":18446744073709551615'
    assert str(Field("b", FieldType.BOOL, True)) == '"b":true'
    assert str(Field("b", FieldType.BOOL, False)) == '"b":false'


def test_string_escapes_html():
    assert str(lc.text("s", "<a>&")) == '"s":"\\u003ca\\u003e\\u0026"'
    assert json.loads("{" + str(lc.text("s", 'q"\n')) + "}") == {"s": 'q"\n'}


def test_skip_field_string_is_empty():
    assert str(lc.skip()) == ""


def test_log_and_log_format(capsys):
    ctx = LogContent(lc.integer("int", 123), lc.text("str", "log content"))
    ctx.log(LogLevel.INFO)
    ctx.log_format(LogLevel.INFO, "log %s", "context")
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].endswith('{"int":123,"str":"log content"}')
    assert lines[1].endswith('{"int":123,"str":"log content"} log context')


def test_log_below_level_is_silent(capsys):
    logger.set_log_level(LogLevel.INFO)
    ctx = LogContent(lc.integer("int", 1))
    ctx.log(LogLevel.DEBUG)
    ctx.log_format(LogLevel.DEBUG, "x")
    assert capsys.readouterr().out == ""


def test_context_round_trip():
    content = LogContent(lc.integer("k", 1))

    def inside():
        lc.to_context(content)
        return lc.from_context()

    assert contextvars.Context().run(inside) is content
    assert contextvars.Context().run(lc.from_context) is None