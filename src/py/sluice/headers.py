from typing import Any, Iterator, Mapping

from .config import DEFAULT_ENCODING

# --
# # Headers
#
# Headers are looked up regardless of case, but are kept exactly as the
# application gave them: same names, same order, and one entry per value
# when a header is repeated (like `Set-Cookie`).


def headerkey(name: str) -> str:
	return name.lower()


class Headers:
	"""An ordered multi-map of header names to values."""

	__slots__ = ["pairs"]

	@staticmethod
	def From(value: "Headers | Mapping[str, Any] | Any | None") -> "Headers":
		"""Creates headers from another `Headers`, a mapping, or a sequence
		of `(name, value)` pairs. Mapping values that are lists or tuples
		are added as repeated headers."""
		if isinstance(value, Headers):
			return value
		res = Headers()
		if value is None:
			return res
		try:
			pairs = iter(value.items() if isinstance(value, Mapping) else value)
		except TypeError as e:
			raise ValueError(f"Headers must be a mapping or pairs, got: {value!r}") from e
		for pair in pairs:
			try:
				name, v = pair
			except (TypeError, ValueError) as e:
				raise ValueError(f"Expected a (name, value) header pair, got: {pair!r}") from e
			if isinstance(v, (list, tuple)):
				for _ in v:
					res.add(name, _)
			else:
				res.add(name, v)
		return res

	def __init__(self) -> None:
		self.pairs: list[tuple[str, str]] = []

	def copy(self) -> "Headers":
		res = Headers()
		res.pairs = list(self.pairs)
		return res

	def add(self, name: str, value: Any) -> "Headers":
		if not isinstance(name, str) or not name:
			raise ValueError(f"Header name must be a non-empty string, got: {name!r}")
		text = str(value)
		if "\r" in text or "\n" in text or "\r" in name or "\n" in name:
			raise ValueError(f"Header contains a line break: {name!r}")
		self.pairs.append((name, text))
		return self

	def set(self, name: str, value: Any) -> "Headers":
		"""Replaces all the values of `name`. The header keeps the position
		of its first occurrence."""
		key = headerkey(name)
		for i, (k, _) in enumerate(self.pairs):
			if headerkey(k) == key:
				self.remove(name)
				self.add(name, value)
				self.pairs.insert(i, self.pairs.pop())
				return self
		return self.add(name, value)

	def setDefault(self, name: str, value: Any) -> "Headers":
		return self if name in self else self.add(name, value)

	def remove(self, name: str) -> "Headers":
		key = headerkey(name)
		self.pairs = [_ for _ in self.pairs if headerkey(_[0]) != key]
		return self

	def get(self, name: str, default: str | None = None) -> str | None:
		key = headerkey(name)
		for k, v in self.pairs:
			if headerkey(k) == key:
				return v
		return default

	def getAll(self, name: str) -> list[str]:
		key = headerkey(name)
		return [v for k, v in self.pairs if headerkey(k) == key]

	def items(self) -> list[tuple[str, str]]:
		return list(self.pairs)

	def names(self) -> list[str]:
		return [k for k, _ in self.pairs]

	def encode(self) -> bytes:
		"""Serializes the headers as `Name: value` lines, as given."""
		return b"".join(
			f"{k}: {v}\r\n".encode(DEFAULT_ENCODING) for k, v in self.pairs
		)

	def __contains__(self, name: object) -> bool:
		return isinstance(name, str) and self.get(name) is not None

	def __iter__(self) -> Iterator[tuple[str, str]]:
		return iter(self.pairs)

	def __len__(self) -> int:
		return len(self.pairs)

	def __eq__(self, other: object) -> bool:
		return isinstance(other, Headers) and self.pairs == other.pairs

	def __str__(self) -> str:
		return f"Headers({', '.join(f'{k}={v}' for k, v in self.pairs)})"


# EOF
