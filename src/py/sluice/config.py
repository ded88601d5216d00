from os import getenv

DEFAULT_ENCODING: str = "utf8"

# Size of the reads issued to `Handle` bodies and input ports
CHUNK_SIZE: int = int(getenv("SLUICE_CHUNK_SIZE", 64_000))

# How much of a spooled request body is kept in memory before it rolls over
# to a temporary file.
SPOOL_MEMORY: int = int(getenv("SLUICE_SPOOL_MEMORY", 1024 * 1024))

LOG_LEVEL: str = getenv("SLUICE_LOG_LEVEL", "Info")

LOG_DRAIN: bool = getenv("SLUICE_LOG_DRAIN", "0") == "1"

# EOF
