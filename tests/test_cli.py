import gzip
import sys
import types
from io import BytesIO, TextIOWrapper

import pytest

from sluice.__main__ import contentLength, load, main


def application(environ, ports):
	body = ports.input.read()
	if ports.input.canRewind:
		body += b"|" + ports.input.rewind().read()
	ports.errors.write(b"cgi\n")
	return 200, [("Content-Type", "text/plain")], [environ["REQUEST_METHOD"], b" ", body]


@pytest.fixture
def cgi(monkeypatch):
	"""Returns a function running the CLI with the given arguments, returning
	what it wrote to stdout. The standard streams are only replaced for the
	duration of the call."""
	module = types.ModuleType("cgiapp")
	module.application = application  # type: ignore
	monkeypatch.setitem(sys.modules, "cgiapp", module)
	monkeypatch.setenv("REQUEST_METHOD", "POST")
	monkeypatch.setenv("CONTENT_LENGTH", "4")

	def run(args: list[str]) -> bytes:
		stdout = BytesIO()
		with monkeypatch.context() as patch:
			patch.setattr(sys, "stdin", TextIOWrapper(BytesIO(b"bodyEXTRA")))
			patch.setattr(sys, "stdout", TextIOWrapper(stdout))
			assert main(args) == 0
			return stdout.getvalue()

	return run


def test_load(cgi):
	assert load("cgiapp:application") is application
	with pytest.raises(ValueError):
		load("no-separator")
	with pytest.raises(ValueError):
		load("sluice:missing")


def test_content_length():
	assert contentLength("12") == 12
	assert contentLength("") is None
	assert contentLength(None) is None
	assert contentLength("twelve") is None


def test_main(cgi):
	# stdin is a BytesIO, which is seekable, so the input can rewind
	assert cgi(["cgiapp:application"]) == (
		b"Status: 200 OK\r\nContent-Type: text/plain\r\nContent-Length: 14\r\n\r\n"
		b"POST body|body"
	)


def test_main_gzip(cgi):
	head, body = cgi(["--gzip", "--spool", "cgiapp:application"]).split(b"\r\n\r\n", 1)
	assert b"Content-Encoding: gzip" in head
	assert b"Content-Length" not in head
	assert gzip.decompress(body) == b"POST body|body"


# EOF
