import pytest

from sluice.headers import Headers


def test_lookup_ignores_case():
	headers = Headers.From({"Content-Type": "text/plain"})
	assert headers.get("content-type") == "text/plain"
	assert headers.get("CONTENT-TYPE") == "text/plain"
	assert "content-TYPE" in headers
	assert "Content-Length" not in headers
	assert headers.get("Content-Length", "0") == "0"


def test_names_are_preserved():
	headers = Headers.From([("x-lower", "1"), ("X-UPPER", "2")])
	assert headers.names() == ["x-lower", "X-UPPER"]
	assert headers.encode() == b"x-lower: 1\r\nX-UPPER: 2\r\n"


def test_multiple_values():
	headers = Headers.From(
		[("Set-Cookie", "a=1"), ("Content-Type", "text/html"), ("set-cookie", "b=2")]
	)
	assert headers.getAll("SET-COOKIE") == ["a=1", "b=2"]
	assert headers.get("Set-Cookie") == "a=1"
	assert len(headers) == 3
	assert Headers.From({"Vary": ["Accept", "Origin"]}).getAll("vary") == [
		"Accept",
		"Origin",
	]


def test_set_replaces_in_place():
	headers = Headers.From([("A", "1"), ("B", "2"), ("a", "3"), ("C", "4")])
	headers.set("a", "5")
	assert headers.items() == [("a", "5"), ("B", "2"), ("C", "4")]
	headers.set("D", 6)
	assert headers.items()[-1] == ("D", "6")
	headers.setDefault("b", "ignored").setDefault("E", "7")
	assert headers.get("B") == "2"
	assert headers.get("e") == "7"


def test_remove():
	headers = Headers.From([("A", "1"), ("a", "2"), ("B", "3")])
	headers.remove("A")
	assert list(headers) == [("B", "3")]


def test_invalid_headers():
	with pytest.raises(ValueError):
		Headers().add("X-Injected", "value\r\nSet-Cookie: evil=1")
	with pytest.raises(ValueError):
		Headers().add("", "value")
	with pytest.raises(ValueError):
		Headers.From([("only-a-name",)])


def test_from_headers_is_identity():
	headers = Headers.From(None)
	assert len(headers) == 0
	assert Headers.From(headers) is headers


# EOF
