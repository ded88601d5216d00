import os
import stat
from pathlib import Path
from typing import Any, Callable, NamedTuple, NoReturn, TypeAlias

from .config import CHUNK_SIZE, LOG_DRAIN
from .utils.io import EOS, asChunk, isEnd
from .utils.logging import debug, warning

# --
# # Bodies
#
# An application may return its response body in one of four shapes. They
# are classified once, when the body is received, into one of the variants
# below, and `drain` then consumes any of them into a sink with the same
# guarantees: every chunk delivered once and in order, and the close hook of
# the variant (if any) called exactly once, whatever happens.

TSink: TypeAlias = Callable[[bytes], Any]

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class DrainError(Exception):
	"""Raised when a body could not be fully drained. The original exception
	is available as `cause` (and as `__cause__`)."""

	def __init__(
		self,
		message: str,
		cause: BaseException | None = None,
		*,
		chunks: int = 0,
		written: int = 0,
	):
		super().__init__(message)
		self.message: str = message
		self.cause: BaseException | None = cause
		# What was delivered to the sink before the failure
		self.chunks: int = chunks
		self.written: int = written


class ProducerFailed(DrainError):
	"""The body source raised while being drained."""


class SinkFailed(DrainError):
	"""The sink raised while accepting a chunk."""


# -----------------------------------------------------------------------------
#
# VARIANTS
#
# -----------------------------------------------------------------------------


class Chunks(NamedTuple):
	"""A body whose chunks are all known before draining starts."""

	chunks: tuple[Any, ...] = ()


class Handle(NamedTuple):
	"""A body read from a file-like object with `read(size)` and `close()`,
	such as a file, a pipe or a socket file."""

	handle: Any
	size: int = CHUNK_SIZE


class Iterable(NamedTuple):
	"""A body that pushes its chunks through `forEach(sink)`, or that is
	iterated. The optional `close` is resolved when the variant is created."""

	iterable: Any
	close: Callable[[], Any] | None = None


class Generator(NamedTuple):
	"""A body pulled from a zero-argument callable until it returns `None`
	or `EOS`."""

	producer: Callable[[], Any]


TBodySource: TypeAlias = Chunks | Handle | Iterable | Generator

VARIANTS: tuple[type, ...] = (Chunks, Handle, Iterable, Generator)


class BodySource:
	"""Contains helpers to work with body sources."""

	@staticmethod
	def From(value: Any) -> TBodySource:
		"""Classifies the given body value. The order of the checks matters:
		file objects are iterable, and callables may have any attribute."""
		if isinstance(value, VARIANTS):
			return value
		elif value is None:
			return Chunks()
		elif isinstance(value, (bytes, bytearray, memoryview, str)):
			return Chunks((value,))
		elif isinstance(value, (list, tuple)):
			return Chunks(tuple(value))
		elif isinstance(value, Path):
			return Handle(open(value, "rb"))
		elif hasattr(value, "read") and hasattr(value, "close"):
			return Handle(value)
		elif callable(value):
			return Generator(value)
		elif hasattr(value, "forEach") or hasattr(value, "__iter__"):
			close = getattr(value, "close", None)
			return Iterable(value, close if callable(close) else None)
		else:
			raise ValueError(f"Unsupported body format {type(value)}: {value!r}")

	@staticmethod
	def HasClose(body: TBodySource) -> bool:
		if isinstance(body, Handle):
			return True
		elif isinstance(body, Iterable):
			return body.close is not None
		else:
			return False

	@staticmethod
	def Length(body: TBodySource) -> int | None:
		"""Returns the number of bytes the body will produce, when it can be
		known without draining it."""
		if isinstance(body, Chunks):
			n: int = 0
			for chunk in body.chunks:
				if isinstance(chunk, str):
					n += len(asChunk(chunk))
				elif isinstance(chunk, (bytes, bytearray)):
					n += len(chunk)
				elif isinstance(chunk, memoryview):
					n += chunk.nbytes
				else:
					return None
			return n
		elif isinstance(body, Handle):
			fileno = getattr(body.handle, "fileno", None)
			tell = getattr(body.handle, "tell", None)
			if not (callable(fileno) and callable(tell)):
				return None
			try:
				info = os.fstat(fileno())
				return info.st_size - tell() if stat.S_ISREG(info.st_mode) else None
			except (OSError, ValueError):
				return None
		else:
			return None


# -----------------------------------------------------------------------------
#
# DRAINING
#
# -----------------------------------------------------------------------------


class Delivery:
	"""Pushes chunks to the sink, keeping count of what was delivered and of
	the first failure."""

	__slots__ = ["sink", "chunks", "written", "failure"]

	def __init__(self, sink: TSink) -> None:
		self.sink: TSink = sink
		self.chunks: int = 0
		self.written: int = 0
		self.failure: DrainError | None = None

	def fail(
		self, kind: type[DrainError], message: str, cause: BaseException | None
	) -> DrainError:
		if self.failure is None:
			self.failure = kind(
				message, cause, chunks=self.chunks, written=self.written
			)
		return self.failure

	def push(self, value: Any) -> None:
		# A push after a failure (ie. from a `forEach` that swallowed our
		# error) must not reach the sink.
		if self.failure:
			raise self.failure
		try:
			chunk = asChunk(value)
		except Exception as e:
			raise self.fail(ProducerFailed, f"Body produced an invalid chunk: {e}", e) from e
		try:
			self.sink(chunk)
		except Exception as e:
			raise self.fail(SinkFailed, f"Sink failed after {self.written} bytes: {e}", e) from e
		self.chunks += 1
		self.written += len(chunk)

	def produced(self, e: Exception) -> NoReturn:
		raise self.fail(ProducerFailed, f"Body failed after {self.written} bytes: {e}", e) from e


def drainChunks(body: Chunks, delivery: Delivery) -> None:
	for chunk in body.chunks:
		delivery.push(chunk)


def drainHandle(body: Handle, delivery: Delivery) -> None:
	read = body.handle.read
	while True:
		try:
			chunk = read(body.size)
		except Exception as e:
			delivery.produced(e)
		if not chunk or chunk is EOS:
			break
		delivery.push(chunk)


def drainGenerator(body: Generator, delivery: Delivery) -> None:
	while True:
		try:
			chunk = body.producer()
		except Exception as e:
			delivery.produced(e)
		if isEnd(chunk):
			break
		delivery.push(chunk)


def drainIterable(body: Iterable, delivery: Delivery) -> None:
	each = getattr(body.iterable, "forEach", None)
	if callable(each):
		try:
			each(delivery.push)
		except DrainError:
			raise
		except Exception as e:
			if delivery.failure:
				raise delivery.failure
			delivery.produced(e)
		# The producer may have caught the error raised by `push`
		if delivery.failure:
			raise delivery.failure
	else:
		try:
			iterator = iter(body.iterable)
		except Exception as e:
			delivery.produced(e)
		while True:
			try:
				chunk = next(iterator)
			except StopIteration:
				break
			except Exception as e:
				delivery.produced(e)
			delivery.push(chunk)


def closer(body: TBodySource) -> Callable[[], Any] | None:
	if isinstance(body, Handle):
		return body.handle.close
	elif isinstance(body, Iterable):
		return body.close
	else:
		return None


def release(body: TBodySource) -> None:
	"""Closes a body that will not be drained."""
	close = closer(body)
	if close:
		try:
			close()
		except Exception as e:
			warning(
				"Body close failed while releasing it",
				Variant=body.__class__.__name__,
				Error=str(e),
			)


def drain(source: TBodySource | Any, sink: TSink) -> int:
	"""Drains the given body into `sink`, returning the number of bytes
	written. Raises `ProducerFailed` or `SinkFailed`, in which case the body
	is still closed."""
	body = BodySource.From(source)
	delivery = Delivery(sink)
	close = closer(body)
	try:
		if isinstance(body, Chunks):
			drainChunks(body, delivery)
		elif isinstance(body, Handle):
			drainHandle(body, delivery)
		elif isinstance(body, Generator):
			drainGenerator(body, delivery)
		else:
			drainIterable(body, delivery)
	except BaseException as e:
		if close:
			try:
				close()
			except Exception as f:
				# The drain error is the one that propagates
				warning(
					"Body close failed while handling a drain error",
					Variant=body.__class__.__name__,
					Error=str(f),
					Cause=str(e),
				)
		raise
	if close:
		try:
			close()
		except Exception as e:
			delivery.produced(e)
	if LOG_DRAIN:
		debug(
			"Body drained",
			Variant=body.__class__.__name__,
			Chunks=delivery.chunks,
			Bytes=delivery.written,
		)
	return delivery.written


# EOF
