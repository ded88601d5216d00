import zlib
from abc import ABC, abstractmethod

from mypy_extensions import mypyc_attr


@mypyc_attr(allow_interpreted_subclasses=True)
class BytesTransform(ABC):
	"""An abstract bytes transform, applied by a transport to the body as it
	is drained."""

	@abstractmethod
	def feed(self, chunk: bytes) -> bytes:
		"""Feeds bytes to the transform, returning what can be output now
		(possibly nothing)."""

	@abstractmethod
	def flush(self) -> bytes:
		"""Returns whatever the transform still holds, once the body is
		complete."""


class PipelineCodec(BytesTransform):
	"""Composes transforms, the output of one feeding the next."""

	__slots__ = ["transforms"]

	def __init__(self, transforms: list[BytesTransform]) -> None:
		super().__init__()
		self.transforms: list[BytesTransform] = transforms

	def feed(self, chunk: bytes) -> bytes:
		for t in self.transforms:
			if not chunk:
				break
			chunk = t.feed(chunk)
		return chunk

	def flush(self) -> bytes:
		# Each transform's remainder goes through the transforms that follow
		# it before they are flushed in turn.
		res: bytes = b""
		for t in self.transforms:
			res = (t.feed(res) if res else b"") + t.flush()
		return res


class GZipEncoder(BytesTransform):
	"""Encode bytes as Gzip"""

	__slots__ = ["compressor"]

	def __init__(self, compression_level: int = 6) -> None:
		super().__init__()
		self.compressor = zlib.compressobj(
			level=compression_level, wbits=zlib.MAX_WBITS | 16
		)

	def feed(self, chunk: bytes) -> bytes:
		return self.compressor.compress(chunk)

	def flush(self) -> bytes:
		return self.compressor.flush()


# SEE: https://httpwg.org/specs/rfc9112.html#chunked.encoding
class ChunkedEncoder(BytesTransform):
	"""Frames each non-empty chunk, and terminates the body on flush."""

	def feed(self, chunk: bytes) -> bytes:
		if not chunk:
			return b""
		return f"{len(chunk):X}\r\n".encode("ascii") + chunk + b"\r\n"

	def flush(self) -> bytes:
		return b"0\r\n\r\n"


# EOF
