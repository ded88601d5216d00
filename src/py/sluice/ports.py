import sys
from abc import ABC, abstractmethod
from enum import Enum
from io import TextIOBase
from tempfile import SpooledTemporaryFile
from typing import IO, Any, Iterator, NamedTuple

from mypy_extensions import mypyc_attr

from .config import CHUNK_SIZE, DEFAULT_ENCODING, SPOOL_MEMORY
from .utils.io import EOL, asText

# --
# # Stream Ports
#
# The ports a gateway hands to an application for the duration of one
# request: `input` to read the request body from, and `errors` to write
# diagnostics to. Both follow a small state machine, and both must be closed
# when the request is over.

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class PortError(Exception):
	pass


class CapabilityUnsupported(PortError):
	"""An optional capability (like `rewind`) is not available on this port.
	Callers are expected to fall back to not using it."""


class PortClosed(PortError):
	"""An I/O operation was attempted on a closed port."""


class PortState(Enum):
	Open = 0
	Exhausted = 1
	Closed = 2


# -----------------------------------------------------------------------------
#
# INPUT
#
# -----------------------------------------------------------------------------


@mypyc_attr(allow_interpreted_subclasses=True)
class InputPort(ABC):
	"""Base class for request body readers. Subclasses implement `_read`,
	which returns `b""` once the underlying source is exhausted, and
	`_rewind` when they support it."""

	__slots__ = ["state", "pending", "ended"]

	def __init__(self) -> None:
		self.state: PortState = PortState.Open
		# Bytes read ahead by `readLine`, served before the source
		self.pending: bytearray = bytearray()
		self.ended: bool = False

	@property
	def canRewind(self) -> bool:
		return False

	@abstractmethod
	def _read(self, size: int) -> bytes: ...

	def _rewind(self) -> None:
		raise CapabilityUnsupported(f"{self.__class__.__name__} cannot rewind")

	def _close(self) -> None:
		pass

	def ensureOpen(self) -> None:
		if self.state is PortState.Closed:
			raise PortClosed(f"{self.__class__.__name__} is closed")

	def fill(self, size: int) -> bool:
		"""Reads more bytes from the source into the pending buffer, returning
		`False` when the source is exhausted."""
		if self.ended:
			return False
		chunk = self._read(size)
		if chunk:
			self.pending += chunk
			return True
		else:
			self.ended = True
			return False

	def take(self, size: int) -> bytes:
		chunk = bytes(self.pending[:size])
		del self.pending[:size]
		return chunk

	def exhausted(self) -> bytes:
		self.state = PortState.Exhausted
		return b""

	def read(self, size: int = -1) -> bytes:
		"""Returns up to `size` bytes (everything left when `size` is
		negative), or `b""` once the body is exhausted."""
		self.ensureOpen()
		if size < 0:
			return self.readAll()
		elif self.state is PortState.Exhausted:
			return b""
		elif size == 0:
			return b""
		elif self.pending:
			return self.take(size)
		elif self.ended:
			return self.exhausted()
		chunk = self._read(size)
		if chunk:
			return chunk
		else:
			self.ended = True
			return self.exhausted()

	def readLine(self, limit: int = -1) -> bytes:
		"""Returns the next line including its `\\n`, at most `limit` bytes
		long when `limit` is positive. A `limit` of zero is rejected, as
		its empty result would read as the end of the body."""
		self.ensureOpen()
		if limit == 0:
			raise ValueError("Line limit must be positive, or negative for no limit")
		if self.state is PortState.Exhausted:
			return b""
		offset: int = 0
		while True:
			end = self.pending.find(EOL, offset)
			if end >= 0 and (limit < 0 or end < limit):
				return self.take(end + 1)
			elif limit >= 0 and len(self.pending) >= limit:
				return self.take(limit)
			offset = len(self.pending)
			if not self.fill(CHUNK_SIZE):
				break
		return self.take(len(self.pending)) if self.pending else self.exhausted()

	def readLines(self, hint: int = -1) -> list[bytes]:
		"""Returns the remaining lines, stopping once `hint` bytes have been
		read when `hint` is positive."""
		lines: list[bytes] = []
		total: int = 0
		while line := self.readLine():
			lines.append(line)
			total += len(line)
			if 0 < hint <= total:
				break
		return lines

	def readAll(self, sizeHint: int = -1) -> bytes:
		"""Reads the remaining bytes of the body. The `sizeHint` is the size
		of the reads issued to the source."""
		self.ensureOpen()
		if self.state is PortState.Exhausted:
			return b""
		size = sizeHint if sizeHint > 0 else CHUNK_SIZE
		data = bytearray(self.take(len(self.pending)))
		while self.fill(size):
			data += self.pending
			self.pending.clear()
		self.state = PortState.Exhausted
		return bytes(data)

	def rewind(self) -> "InputPort":
		"""Restarts reading from the first byte of the body, or raises
		`CapabilityUnsupported`."""
		self.ensureOpen()
		if not self.canRewind:
			raise CapabilityUnsupported(f"{self.__class__.__name__} cannot rewind")
		self._rewind()
		self.pending.clear()
		self.ended = False
		self.state = PortState.Open
		return self

	def close(self) -> None:
		if self.state is not PortState.Closed:
			self.state = PortState.Closed
			self.pending.clear()
			self._close()

	def __iter__(self) -> Iterator[bytes]:
		while line := self.readLine():
			yield line


class EmptyInput(InputPort):
	"""The input of a request without a body."""

	__slots__: list[str] = []

	@property
	def canRewind(self) -> bool:
		return True

	def _read(self, size: int) -> bytes:
		return b""

	def _rewind(self) -> None:
		pass


class BytesInput(InputPort):
	"""An input read from bytes already in memory."""

	__slots__ = ["data", "offset"]

	def __init__(self, data: bytes = b"") -> None:
		super().__init__()
		self.data: bytes = bytes(data)
		self.offset: int = 0

	@property
	def canRewind(self) -> bool:
		return True

	def _read(self, size: int) -> bytes:
		chunk = self.data[self.offset : self.offset + size]
		self.offset += len(chunk)
		return chunk

	def _rewind(self) -> None:
		self.offset = 0


class StreamInput(InputPort):
	"""An input read from a binary stream (a pipe, a socket file, a file).
	When `length` is given, no more than `length` bytes are read from the
	stream, so that whatever follows the body is left untouched. The stream
	can be rewound only when it is seekable."""

	__slots__ = ["stream", "length", "remaining", "start", "owned"]

	def __init__(
		self, stream: IO[bytes], length: int | None = None, *, owned: bool = False
	) -> None:
		super().__init__()
		self.stream: IO[bytes] = stream
		self.length: int | None = length
		self.remaining: int | None = length
		self.owned: bool = owned
		self.start: int | None = None
		seekable = getattr(stream, "seekable", None)
		if callable(seekable) and seekable():
			self.start = stream.tell()

	@property
	def canRewind(self) -> bool:
		return self.start is not None

	def _read(self, size: int) -> bytes:
		if self.remaining is not None:
			if self.remaining <= 0:
				return b""
			size = min(size, self.remaining)
		chunk = self.stream.read(size) or b""
		if self.remaining is not None:
			self.remaining -= len(chunk)
		return chunk

	def _rewind(self) -> None:
		if self.start is None:
			raise CapabilityUnsupported(f"{self.__class__.__name__} cannot rewind")
		self.stream.seek(self.start)
		self.remaining = self.length

	def _close(self) -> None:
		if self.owned:
			self.stream.close()


class SpooledInput(StreamInput):
	"""A stream input that keeps a copy of everything it reads in a spooled
	temporary file, so that it can be rewound even when the stream is a live
	socket. The copy stays in memory up to `memory` bytes."""

	__slots__ = ["spool"]

	def __init__(
		self,
		stream: IO[bytes],
		length: int | None = None,
		*,
		memory: int = SPOOL_MEMORY,
		owned: bool = False,
	) -> None:
		super().__init__(stream, length, owned=owned)
		self.spool: SpooledTemporaryFile[bytes] = SpooledTemporaryFile(
			max_size=memory, prefix="sluice", suffix="input"
		)

	@property
	def canRewind(self) -> bool:
		return True

	def _read(self, size: int) -> bytes:
		# After a rewind, the spool is replayed before reading the stream
		# again. New bytes are appended where the replay ended.
		chunk = self.spool.read(size)
		if chunk:
			return chunk
		chunk = super()._read(size)
		if chunk:
			self.spool.write(chunk)
		return chunk

	def _rewind(self) -> None:
		self.spool.seek(0)

	def _close(self) -> None:
		self.spool.close()
		super()._close()


# -----------------------------------------------------------------------------
#
# ERRORS PORT
#
# -----------------------------------------------------------------------------


class ErrorPort:
	"""A diagnostic sink, separate from the response body. Writes are not
	flushed implicitly. The underlying stream is only closed if the port
	owns it."""

	__slots__ = ["stream", "owned", "text", "state"]

	@staticmethod
	def Stderr() -> "ErrorPort":
		return ErrorPort(sys.stderr)

	def __init__(self, stream: IO[Any], *, owned: bool = False) -> None:
		self.stream: IO[Any] = stream
		self.owned: bool = owned
		self.text: bool = isinstance(stream, TextIOBase)
		self.state: PortState = PortState.Open

	@property
	def isClosed(self) -> bool:
		return self.state is PortState.Closed

	def ensureOpen(self) -> None:
		if self.state is PortState.Closed:
			raise PortClosed("Error port is closed")

	def write(self, data: bytes | str) -> int:
		self.ensureOpen()
		if self.text:
			self.stream.write(asText(data))
		else:
			self.stream.write(
				data.encode(DEFAULT_ENCODING) if isinstance(data, str) else data
			)
		return len(data)

	def writeLines(self, lines: list[bytes | str]) -> None:
		for line in lines:
			self.write(line)

	def flush(self) -> None:
		self.ensureOpen()
		self.stream.flush()

	def close(self) -> None:
		if self.state is not PortState.Closed:
			self.state = PortState.Closed
			if self.owned:
				self.stream.close()


# -----------------------------------------------------------------------------
#
# PORTS
#
# -----------------------------------------------------------------------------


class StreamPorts(NamedTuple):
	"""The input and error ports given to an application for one request."""

	input: InputPort
	errors: ErrorPort

	@staticmethod
	def Create(
		input: InputPort | bytes | None = None, errors: ErrorPort | None = None
	) -> "StreamPorts":
		return StreamPorts(
			input=(
				input
				if isinstance(input, InputPort)
				else EmptyInput()
				if input is None
				else BytesInput(input)
			),
			errors=ErrorPort.Stderr() if errors is None else errors,
		)

	def close(self) -> None:
		try:
			self.input.close()
		finally:
			self.errors.close()


# EOF
