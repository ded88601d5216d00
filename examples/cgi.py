"""
CGI Example

Each route returns its body in a different shape, the gateway drains them
all the same way.

Usage:
    REQUEST_METHOD=GET PATH_INFO=/file sluice cgi:application
    REQUEST_METHOD=POST CONTENT_LENGTH=5 PATH_INFO=/echo sluice --spool cgi:application <<< "hello"
"""

import time
from pathlib import Path

from sluice.ports import CapabilityUnsupported


def counter(limit: int):
	count = 0

	def next() -> bytes | None:
		nonlocal count
		count += 1
		return f"{count}\n".encode() if count <= limit else None

	return next


def clock(count: int):
	for _ in range(count):
		yield f"{time.time()}\n"


def application(environ, ports):
	path = environ.get("PATH_INFO", "/")
	if path == "/file":
		return 200, [("Content-Type", "text/x-python")], Path(__file__)
	elif path == "/count":
		return 200, [("Content-Type", "text/plain")], counter(10)
	elif path == "/clock":
		return 200, [("Content-Type", "text/plain")], clock(3)
	elif path == "/echo":
		head = ports.input.readLine()
		try:
			ports.input.rewind()
		except CapabilityUnsupported:
			ports.errors.write(b"Input cannot rewind, echoing the first line only\n")
			return 200, [("Content-Type", "text/plain")], [head]
		return 200, [("Content-Type", "text/plain")], [ports.input.readAll()]
	else:
		return 404, [("Content-Type", "text/plain")], ["Not Found"]

# EOF
