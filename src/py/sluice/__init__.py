from .body import (
	BodySource,
	Chunks,
	DrainError,
	Generator,
	Handle,
	Iterable,
	ProducerFailed,
	SinkFailed,
	drain,
)  # NOQA: F401
from .ports import (
	BytesInput,
	CapabilityUnsupported,
	EmptyInput,
	ErrorPort,
	InputPort,
	PortClosed,
	PortState,
	SpooledInput,
	StreamInput,
	StreamPorts,
)  # NOQA: F401
from .headers import Headers  # NOQA: F401
from .gateway import (
	ApplicationError,
	BufferTransport,
	Gateway,
	Response,
	StreamTransport,
	Transport,
)  # NOQA: F401
from .utils.io import EOS  # NOQA: F401

# EOF
