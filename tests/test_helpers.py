from datetime import date

from helpers import MethodOverrideMiddleware, format_date


def _seen_method(environ):
    seen = {}

    def inner(environ, start_response):
        seen["method"] = environ["REQUEST_METHOD"]
        return []

    MethodOverrideMiddleware(inner)(environ, None)
    return seen["method"]


def test_override_from_query_string():
    assert _seen_method({"REQUEST_METHOD": "POST", "QUERY_STRING": "_method=delete"}) == "DELETE"
    assert _seen_method({"REQUEST_METHOD": "POST", "QUERY_STRING": "a=1&_method=PUT"}) == "PUT"


def test_override_from_header():
    environ = {"REQUEST_METHOD": "POST", "HTTP_X_HTTP_METHOD_OVERRIDE": "PUT"}
    assert _seen_method(environ) == "PUT"


def test_override_ignores_get_and_unknown_methods():
    assert _seen_method({"REQUEST_METHOD": "GET", "QUERY_STRING": "_method=DELETE"}) == "GET"
    assert _seen_method({"REQUEST_METHOD": "POST", "QUERY_STRING": "_method=TRACE"}) == "POST"


def test_format_date():
    assert format_date("2025-11-15") == "Nov 15, 2025"
    assert format_date(date(2030, 1, 2)) == "Jan 02, 2030"
    assert format_date("someday") == "someday"
    assert format_date(None) == ""


def test_override_query_string_is_url_decoded():
    assert _seen_method({"REQUEST_METHOD": "POST", "QUERY_STRING": "_method=%50UT"}) == "PUT"
    assert _seen_method({"REQUEST_METHOD": "POST", "QUERY_STRING": "x=a%26b&_method=%44ELETE"}) == "DELETE"
