from io import BytesIO, StringIO

import pytest

from sluice.ports import (
	BytesInput,
	CapabilityUnsupported,
	EmptyInput,
	ErrorPort,
	PortClosed,
	PortState,
	SpooledInput,
	StreamInput,
	StreamPorts,
)


class Pipe:
	"""A non-seekable stream returning at most `size` bytes per read, like a
	socket would."""

	def __init__(self, data: bytes, size: int = 3):
		self.data = data
		self.size = size
		self.offset = 0
		self.closed = False

	def read(self, size: int = -1) -> bytes:
		n = self.size if size < 0 else min(size, self.size)
		chunk = self.data[self.offset : self.offset + n]
		self.offset += len(chunk)
		return chunk

	def close(self) -> None:
		self.closed = True


def readAll(port, size: int = 4) -> bytes:
	data = bytearray()
	while chunk := port.read(size):
		data += chunk
	return bytes(data)


# -----------------------------------------------------------------------------
#
# INPUT
#
# -----------------------------------------------------------------------------


def test_read_in_chunks():
	port = BytesInput(b"Hello, World")
	assert port.read(5) == b"Hello"
	assert port.read(100) == b", World"
	assert port.state is PortState.Open
	assert port.read(5) == b""
	assert port.state is PortState.Exhausted


def test_read_after_exhausted_is_idempotent():
	port = StreamInput(Pipe(b"abc"))
	assert readAll(port) == b"abc"
	for _ in range(5):
		assert port.read(10) == b""
		assert port.readLine() == b""
		assert port.readAll() == b""
	assert port.state is PortState.Exhausted


def test_read_everything():
	port = StreamInput(Pipe(b"abcdefgh"))
	assert port.read() == b"abcdefgh"
	assert port.read() == b""
	assert port.state is PortState.Exhausted


def test_read_zero():
	port = BytesInput(b"abc")
	assert port.read(0) == b""
	assert port.state is PortState.Open
	assert port.read(3) == b"abc"


def test_read_lines():
	port = StreamInput(Pipe(b"first\nsecond\n\nlast"))
	assert port.readLine() == b"first\n"
	assert port.read(2) == b"se"
	assert port.readLine() == b"cond\n"
	assert port.readLine() == b"\n"
	assert port.readLine() == b"last"
	assert port.readLine() == b""
	assert port.state is PortState.Exhausted


def test_read_line_limit():
	port = BytesInput(b"abcdef\ngh")
	assert port.readLine(4) == b"abcd"
	assert port.readLine(3) == b"ef\n"
	assert port.readLine(10) == b"gh"


def test_read_line_zero_limit():
	port = BytesInput(b"abc\n")
	with pytest.raises(ValueError):
		port.readLine(0)
	assert port.state is PortState.Open
	assert port.readLine() == b"abc\n"


def test_iterate_lines():
	port = StreamInput(Pipe(b"a\nb\nc"))
	assert list(port) == [b"a\n", b"b\n", b"c"]
	assert BytesInput(b"a\nbb\nccc\n").readLines(3) == [b"a\n", b"bb\n"]


def test_read_all_after_read_line():
	port = StreamInput(Pipe(b"head\nbody body body"))
	assert port.readLine() == b"head\n"
	assert port.readAll(sizeHint=2) == b"body body body"
	assert port.state is PortState.Exhausted


def test_stream_input_length():
	stream = BytesIO(b"first bodynext request")
	port = StreamInput(stream, length=10)
	assert readAll(port, 3) == b"first body"
	assert stream.read() == b"next request"


def test_stream_input_length_line():
	stream = Pipe(b"line\nline\nnext")
	port = StreamInput(stream, length=7)
	assert port.readLine() == b"line\n"
	assert port.readLine() == b"li"
	assert port.readLine() == b""


def test_rewind_bytes():
	port = BytesInput(b"Hello")
	assert port.canRewind
	assert readAll(port, 2) == b"Hello"
	port.rewind()
	assert port.state is PortState.Open
	assert port.read() == b"Hello"


def test_rewind_seekable_stream():
	stream = BytesIO(b"xxHello")
	stream.seek(2)
	port = StreamInput(stream, length=5)
	assert port.canRewind
	assert port.readLine() == b"Hello"
	assert port.rewind().read(2) == b"He"
	port.rewind()
	assert readAll(port) == b"Hello"


def test_rewind_unsupported():
	stream = Pipe(b"abcdef")
	port = StreamInput(stream)
	assert not port.canRewind
	assert port.read(3) == b"abc"
	with pytest.raises(CapabilityUnsupported):
		port.rewind()
	# The failed rewind leaves the port as it was
	assert port.read(10) == b"def"


def test_rewind_spooled():
	stream = Pipe(b"line one\nline two\n", size=4)
	port = SpooledInput(stream, memory=8)
	assert port.canRewind
	assert port.readLine() == b"line one\n"
	port.rewind()
	assert port.read(4) == b"line"
	assert port.readAll() == b" one\nline two\n"
	port.rewind()
	assert readAll(port, 5) == b"line one\nline two\n"
	port.close()
	assert not stream.closed


def test_rewind_spooled_length():
	port = SpooledInput(BytesIO(b"abcdefgh"), length=4)
	assert port.read(10) == b"abcd"
	assert port.read(10) == b""
	port.rewind()
	assert port.read() == b"abcd"


def test_empty_input():
	port = EmptyInput()
	assert port.read(10) == b""
	assert port.readLine() == b""
	assert port.rewind().read() == b""


def test_closed_input():
	stream = Pipe(b"abc")
	port = StreamInput(stream, owned=True)
	port.close()
	port.close()
	assert port.state is PortState.Closed
	assert stream.closed
	with pytest.raises(PortClosed):
		port.read(1)
	with pytest.raises(PortClosed):
		port.readLine()
	with pytest.raises(PortClosed):
		port.rewind()


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


def test_errors_binary():
	stream = BytesIO()
	port = ErrorPort(stream)
	port.write(b"first ")
	port.write("second\n")
	port.writeLines([b"a\n", "b\n"])
	port.flush()
	assert stream.getvalue() == b"first second\na\nb\n"


def test_errors_text():
	stream = StringIO()
	port = ErrorPort(stream)
	port.write("é ".encode("utf8"))
	port.write("text")
	port.flush()
	assert stream.getvalue() == "é text"


def test_errors_closed():
	stream = BytesIO()
	port = ErrorPort(stream)
	port.write(b"before")
	port.close()
	port.close()
	assert port.isClosed
	with pytest.raises(PortClosed):
		port.write(b"after")
	with pytest.raises(PortClosed):
		port.flush()
	# Not owned, so left open
	assert not stream.closed
	assert stream.getvalue() == b"before"


def test_errors_owned():
	stream = BytesIO()
	ErrorPort(stream, owned=True).close()
	assert stream.closed


def test_errors_stderr_not_closed():
	port = ErrorPort.Stderr()
	port.close()
	assert port.isClosed
	assert not port.stream.closed


# -----------------------------------------------------------------------------
#
# PORTS
#
# -----------------------------------------------------------------------------


def test_stream_ports():
	errors = BytesIO()
	ports = StreamPorts.Create(input=b"body", errors=ErrorPort(errors))
	assert isinstance(ports.input, BytesInput)
	assert ports.input.read() == b"body"
	ports.errors.write(b"diagnostic")
	ports.close()
	assert ports.input.state is PortState.Closed
	assert ports.errors.isClosed
	assert errors.getvalue() == b"diagnostic"


def test_stream_ports_defaults():
	ports = StreamPorts.Create()
	assert isinstance(ports.input, EmptyInput)
	assert ports.errors.stream is not None
	ports.close()


# EOF
