import pytest

from lazycache import Headers, ParseError, ValidationError, parse_cache_control


def test_blank_directive():
    header = [","]
    with pytest.raises(ParseError, match="The directive should not be left blank."):
        parse_cache_control(header)


def test_blank_directive_after_ows_stripping():
    header = [" ,"]
    with pytest.raises(ParseError, match="The directive should not contain only whitespaces."):
        parse_cache_control(header)


def test_invalid_key_symbol():
    header = ["\x12 ,"]
    with pytest.raises(ParseError, match=r"The character ''\\x12'' is not permitted in the directive name."):
        parse_cache_control(header)


def test_blank_directive_value():
    header = ["max-age= ,"]
    with pytest.raises(ParseError, match="The directive value cannot be left blank."):
        parse_cache_control(header)


def test_invalid_quotes():
    header = ['max-age="123,']
    with pytest.raises(ParseError, match="Invalid quotes around the value."):
        parse_cache_control(header)


def test_invalid_symbol_in_unquoted():
    header = ["max-age=1\x123,"]
    with pytest.raises(ParseError, match=r"The character ''\\x12'' is not permitted for the unquoted values."):
        parse_cache_control(header)


def test_time_field_without_value():
    header = ["max-age"]
    with pytest.raises(ValidationError, match="The directive 'max_age' necessitates a value."):
        parse_cache_control(header)


def test_time_field_with_quote():
    header = ['min-fresh="123"']
    with pytest.raises(ValidationError, match="The argument 'min_fresh' should be an integer, but a quote was found."):
        parse_cache_control(header)


def test_time_field_invalid_int():
    header = ["max-age=123t1"]
    with pytest.raises(ValidationError, match="The argument 'max_age' should be an integer, but got ''123t1''."):
        parse_cache_control(header)


def test_time_field_negative():
    header = ["max-stale=-1"]
    with pytest.raises(ValidationError, match="The argument 'max_stale' should not be negative."):
        parse_cache_control(header)


def test_boolean_fields_with_value():
    header = ["no-store=1"]
    with pytest.raises(ValidationError, match="The directive 'no_store' should have no value, but it does."):
        parse_cache_control(header)


def test_list_value_empty():
    header = ['no-cache=""']
    with pytest.raises(ValidationError, match="The list value must not be empty."):
        parse_cache_control(header)


def test_request_directives_parsing():
    cache_control = parse_cache_control(["max-age=3600, min-fresh=10", "Max-Stale=30, no-store"])

    assert cache_control.max_age == 3600
    assert cache_control.min_fresh == 10
    assert cache_control.max_stale == 30
    assert cache_control.no_store is True
    assert cache_control.no_cache is False


def test_max_stale_without_value():
    cache_control = parse_cache_control(["max-stale"])

    assert cache_control.max_stale is True


def test_qualified_no_cache():
    cache_control = parse_cache_control(['no-cache="Set-Cookie"'])

    assert cache_control.no_cache == ["Set-Cookie"]


def test_no_cache_argument_keeps_the_other_directives():
    cache_control = parse_cache_control(['max-stale=30, no-cache="x", min-fresh=5'])

    assert cache_control.max_stale == 30
    assert cache_control.min_fresh == 5
    assert cache_control.no_cache == ["x"]


def test_unknown_directives_are_ignored():
    cache_control = parse_cache_control(["community=UCI, max-age=5"])

    assert cache_control.max_age == 5


def test_cache_control_repr():
    cache_control = parse_cache_control(["max-age=5, max-stale, no-cache"])

    assert repr(cache_control) == "<CacheControl max_age=5, max_stale, no_cache>"


def test_headers_are_case_insensitive():
    headers = Headers({"Cache-Control": "no-cache"})
    headers.add("cache-control", "max-age=5")

    assert headers["CACHE-CONTROL"] == "no-cache, max-age=5"
    assert headers.get_list("cache-control") == ["no-cache", "max-age=5"]
    assert "Cache-Control" in headers
    assert list(headers) == ["Cache-Control"]


def test_headers_assignment_replaces_values():
    headers = Headers({"X-Test": ["a", "b"]})
    headers["x-test"] = "c"

    assert headers.multi_items() == [("x-test", "c")]

    del headers["X-TEST"]
    assert "x-test" not in headers
    assert headers.get("x-test") is None


def test_headers_copy_is_independent():
    headers = Headers({"X-Test": "a"})
    copied = headers.copy()
    copied.add("X-Test", "b")

    assert headers.get_list("X-Test") == ["a"]
    assert copied == Headers({"x-test": ["a", "b"]})
