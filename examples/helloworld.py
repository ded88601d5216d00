"""
Basic Hello World Example

Runs an application through the gateway in-process, with the response kept
in memory.
Features shown:
- The (status, headers, body) triple
- Reading the request body from the input port
- Writing diagnostics to the errors port

Usage:
    python helloworld.py
"""

from sluice import Gateway
from sluice.utils.logging import info


def application(environ, ports):
	name = ports.input.read().decode() or "World"
	ports.errors.write(f"Greeting {name}\n")
	return 200, [("Content-Type", "text/plain")], ["Hello, ", name, "!"]


if __name__ == "__main__":
	response = Gateway(application).request(input=b"Sluice")
	info("Response", Status=response.status, Body=response.value.decode())

# EOF
