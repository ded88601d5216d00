import argparse
import importlib
import os
import sys

from .codec import GZipEncoder
from .gateway import Gateway, StreamTransport, TApplication
from .ports import EmptyInput, ErrorPort, InputPort, SpooledInput, StreamInput, StreamPorts
from .utils.logging import info

# --
# # CGI runner
#
# Runs an application for the single request described by the CGI
# environment: the request body is read from stdin, diagnostics go to
# stderr, and the response is written to stdout.


def load(reference: str) -> TApplication:
	"""Loads the application given as `module:callable`."""
	module_name, _, name = reference.partition(":")
	if not module_name or not name:
		raise ValueError(f"Expected MODULE:CALLABLE, got: {reference}")
	module = importlib.import_module(module_name)
	application = getattr(module, name, None)
	if not callable(application):
		raise ValueError(f"No callable '{name}' in module '{module_name}'")
	return application


def contentLength(value: str | None) -> int | None:
	try:
		return int(value) if value else None
	except ValueError:
		return None


def main(args: list[str] | None = None) -> int:
	parser = argparse.ArgumentParser(
		prog="sluice",
		description="Runs an application as a CGI script",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument(
		"application",
		metavar="MODULE:CALLABLE",
		help="The application to run",
	)
	parser.add_argument(
		"-s",
		"--spool",
		action="store_true",
		dest="spool",
		help="Spools the request body so that the application can rewind it",
	)
	parser.add_argument(
		"-z",
		"--gzip",
		action="store_true",
		dest="gzip",
		help="Compresses the response body with gzip",
	)
	parser.add_argument(
		"-v",
		"--verbose",
		action="store_true",
		dest="verbose",
		help="Logs the application being run",
	)
	options = parser.parse_args(args=args)

	application = load(options.application)
	if options.verbose:
		info("Running CGI application", Application=options.application)

	environ = dict(os.environ)
	length = contentLength(environ.get("CONTENT_LENGTH"))
	input: InputPort = (
		EmptyInput()
		if length == 0
		else SpooledInput(sys.stdin.buffer, length)
		if options.spool
		else StreamInput(sys.stdin.buffer, length)
	)
	gateway = Gateway(application, contentEncoding="gzip" if options.gzip else None)
	gateway.handle(
		environ,
		StreamPorts(input, ErrorPort.Stderr()),
		StreamTransport(sys.stdout.buffer, GZipEncoder() if options.gzip else None),
	)
	return 0


if __name__ == "__main__":
	sys.exit(main())

# EOF
