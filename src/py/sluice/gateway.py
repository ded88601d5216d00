from abc import ABC, abstractmethod
from typing import IO, Any, Callable, Mapping, NamedTuple, TypeAlias

from mypy_extensions import mypyc_attr

from .body import BodySource, DrainError, TBodySource, drain, release
from .codec import BytesTransform
from .headers import Headers
from .ports import ErrorPort, InputPort, StreamPorts
from .status import reason
from .utils.logging import error, event, exception, warning

# --
# # Gateway
#
# Runs one request/response cycle: the application is given its stream
# ports, returns `(status, headers, body)`, and the body is drained into a
# transport. The transport is whatever actually carries the bytes (a
# socket, a CGI process's stdout, a buffer); it only needs to accept
# chunks.

TEnviron: TypeAlias = Mapping[str, Any]
TApplication: TypeAlias = Callable[[TEnviron, StreamPorts], Any]

# Responses that never carry a body, and so no `Content-Length`
NO_BODY_STATUS: frozenset[int] = frozenset((204, 304))


class ApplicationError(Exception):
	"""The application raised, or returned something that is not a
	`(status, headers, body)` triple."""


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class Response(NamedTuple):
	status: int
	headers: Headers
	body: TBodySource

	@staticmethod
	def From(value: Any) -> "Response":
		"""Validates and normalizes what an application returned."""
		if isinstance(value, Response):
			return value._replace(headers=value.headers.copy())
		try:
			status, headers, body = value
		except (TypeError, ValueError) as e:
			raise ApplicationError(
				f"Application must return (status, headers, body), got: {value!r}"
			) from e
		# The body is classified first so that it can be released if the
		# rest is invalid.
		try:
			source = BodySource.From(body)
		except ValueError as e:
			raise ApplicationError(str(e)) from e
		try:
			if isinstance(status, bool) or not isinstance(status, int):
				raise ValueError(f"Status must be an int, got: {status!r}")
			if not 100 <= status <= 999:
				raise ValueError(f"Status out of range: {status}")
			# The application may reuse its headers across requests, and the
			# gateway updates the response headers.
			return Response(status, Headers.From(headers).copy(), source)
		except (TypeError, ValueError) as e:
			release(source)
			raise ApplicationError(str(e)) from e

	@property
	def message(self) -> str:
		return reason(self.status)

	def head(self) -> bytes:
		"""Serializes the head as a CGI response head."""
		return (
			f"Status: {self.status} {self.message}\r\n".encode("ascii")
			+ self.headers.encode()
			+ b"\r\n"
		)


# -----------------------------------------------------------------------------
#
# TRANSPORTS
#
# -----------------------------------------------------------------------------


@mypyc_attr(allow_interpreted_subclasses=True)
class Transport(ABC):
	"""Receives the response head, then the body chunks. An optional
	transform is applied to the body."""

	__slots__ = ["transform", "started", "written"]

	def __init__(self, transform: BytesTransform | None = None) -> None:
		self.transform: BytesTransform | None = transform
		self.started: bool = False
		# Bytes written after the transform
		self.written: int = 0

	def start(self, response: Response) -> None:
		if self.started:
			raise RuntimeError("Transport already started")
		self.started = True
		self._start(response)

	def write(self, chunk: bytes) -> None:
		data = self.transform.feed(chunk) if self.transform else chunk
		if data:
			self._write(data)
			self.written += len(data)

	def finish(self) -> None:
		if self.transform and (rest := self.transform.flush()):
			self._write(rest)
			self.written += len(rest)
		self._finish()

	@abstractmethod
	def _start(self, response: Response) -> None: ...

	@abstractmethod
	def _write(self, data: bytes) -> None: ...

	def _finish(self) -> None:
		pass


class BufferTransport(Transport):
	"""Keeps the response in memory."""

	__slots__ = ["status", "headers", "body", "finished"]

	def __init__(self, transform: BytesTransform | None = None) -> None:
		super().__init__(transform)
		self.status: int | None = None
		self.headers: Headers | None = None
		self.body: bytearray = bytearray()
		self.finished: bool = False

	@property
	def value(self) -> bytes:
		return bytes(self.body)

	def _start(self, response: Response) -> None:
		self.status = response.status
		self.headers = response.headers

	def _write(self, data: bytes) -> None:
		self.body += data

	def _finish(self) -> None:
		self.finished = True


class StreamTransport(Transport):
	"""Writes the response to a binary stream, with a CGI head."""

	__slots__ = ["stream"]

	def __init__(
		self, stream: IO[bytes], transform: BytesTransform | None = None
	) -> None:
		super().__init__(transform)
		self.stream: IO[bytes] = stream

	def _start(self, response: Response) -> None:
		self.stream.write(response.head())

	def _write(self, data: bytes) -> None:
		self.stream.write(data)

	def _finish(self) -> None:
		self.stream.flush()


# -----------------------------------------------------------------------------
#
# GATEWAY
#
# -----------------------------------------------------------------------------


class Gateway:
	"""Runs an application for one request at a time. When
	`contentLength` is set, a `Content-Length` header is added to responses
	whose body length is known up front and that don't already have one."""

	def __init__(
		self,
		application: TApplication,
		*,
		contentLength: bool = True,
		contentEncoding: str | None = None,
	) -> None:
		if not callable(application):
			raise ValueError(f"Application is not callable: {application!r}")
		self.application: TApplication = application
		self.contentLength: bool = contentLength
		# Value of the `Content-Encoding` header to set when the transport
		# transforms the body
		self.contentEncoding: str | None = contentEncoding

	def invoke(self, environ: TEnviron, ports: StreamPorts) -> Response:
		try:
			result = self.application(environ, ports)
		except Exception as e:
			exception(e, "Application failed")
			raise ApplicationError(f"Application failed: {e}") from e
		try:
			return Response.From(result)
		except ApplicationError as e:
			error("Application returned an invalid response", "ApplicationError", Error=str(e))
			raise

	def prepare(self, response: Response, transport: Transport) -> Response:
		headers = response.headers
		if transport.transform:
			# The transformed length is not known up front
			headers.remove("Content-Length")
			if self.contentEncoding:
				headers.set("Content-Encoding", self.contentEncoding)
		elif (
			self.contentLength
			and response.status not in NO_BODY_STATUS
			and response.status >= 200
			and "Content-Length" not in headers
		):
			length = BodySource.Length(response.body)
			if length is not None:
				headers.add("Content-Length", length)
		return response

	def handle(
		self, environ: TEnviron, ports: StreamPorts, transport: Transport
	) -> Response:
		"""Runs one request/response cycle. The ports are closed on every
		exit path, and so is the body."""
		try:
			response = self.invoke(environ, ports)
			try:
				transport.start(self.prepare(response, transport))
			except Exception:
				release(response.body)
				raise
			try:
				written = drain(response.body, transport.write)
			except DrainError as e:
				error(
					"Response body could not be drained",
					e.__class__.__name__,
					Status=response.status,
					Chunks=e.chunks,
					Written=e.written,
					Cause=str(e.cause),
				)
				raise
			transport.finish()
			event("response", response.status, Bytes=written, Sent=transport.written)
			return response
		finally:
			try:
				ports.close()
			except Exception as e:
				warning("Stream ports failed to close", Error=str(e))

	def request(
		self,
		environ: TEnviron | None = None,
		input: InputPort | bytes | None = None,
		errors: ErrorPort | None = None,
		transform: BytesTransform | None = None,
	) -> BufferTransport:
		"""Runs the application in-process, returning the buffered
		response."""
		transport = BufferTransport(transform)
		self.handle(
			environ or {}, StreamPorts.Create(input=input, errors=errors), transport
		)
		return transport


# EOF
