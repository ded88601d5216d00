import json
from typing import Any, NamedTuple

from ..config import DEFAULT_ENCODING

EOL: bytes = b"\n"


class Control(NamedTuple):
	id: str


# Returned by producers to signal that there is nothing more to read.
EOS = Control("EOS")


def isEnd(value: Any) -> bool:
	return value is None or value is EOS


def asChunk(value: Any) -> bytes:
	"""Converts a value yielded by a body producer into bytes. Buffers that
	may be reused by the producer are copied."""
	if isinstance(value, bytes):
		return value
	elif isinstance(value, (bytearray, memoryview)):
		return bytes(value)
	elif isinstance(value, str):
		return value.encode(DEFAULT_ENCODING)
	elif isinstance(value, (bool, int, float, list, dict)):
		return json.dumps(value).encode(DEFAULT_ENCODING)
	else:
		raise TypeError(f"Expected a bytes-like chunk, got {type(value)}: {value!r}")


def asText(value: bytes | str) -> str:
	return value if isinstance(value, str) else value.decode(DEFAULT_ENCODING, "replace")


# EOF
