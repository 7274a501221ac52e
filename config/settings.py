"""Project configuration settings.

Constants shared by the vault core and the CLI. A few can be overridden
from the environment so tests and scripts can point at scratch files.
"""

from pathlib import Path
import os


def _env_positive_int(name: str, default: int) -> int:
	# Bad values fall back to the default; the CLI option validates them again.
	try:
		value = int(os.environ.get(name, default))
	except ValueError:
		return default
	return value if value > 0 else default


# Security / crypto
DEFAULT_ITERATIONS = _env_positive_int("PASSHERO_KDF_ITERATIONS", 100_000)
MAX_ITERATIONS = 10_000_000  # upper bound accepted from a stored token
ITERATIONS_HEADER_LENGTH = 4  # uint32 big-endian in front of every token
SALT_LENGTH = 16
KEY_LENGTH = 32  # AES-256
IV_LENGTH = 12   # GCM nonce
AUTH_TAG_LENGTH = 16  # GCM tag length

# Password generation
ABSOLUTE_MIN_CHARS = 15
ABSOLUTE_MAX_CHARS = 100
DEFAULT_MIN_CHARS = 20
DEFAULT_MAX_CHARS = 30
ASCII_MIN = 0x21  # "!"
ASCII_MAX = 0x7E  # "~"

# Vault
DEFAULT_VAULT_PATH = Path(os.environ.get(
	"PASSHERO_VAULT_PATH", Path.home() / ".passhero" / "vault.properties"))
VAULT_FILE_MODE = 0o600

# Logging
LOG_LEVEL = os.environ.get("PASSHERO_LOG_LEVEL", "WARNING").upper()

__all__ = [
	'DEFAULT_ITERATIONS','MAX_ITERATIONS','ITERATIONS_HEADER_LENGTH','SALT_LENGTH','KEY_LENGTH','IV_LENGTH','AUTH_TAG_LENGTH',
	'ABSOLUTE_MIN_CHARS','ABSOLUTE_MAX_CHARS','DEFAULT_MIN_CHARS','DEFAULT_MAX_CHARS',
	'ASCII_MIN','ASCII_MAX','DEFAULT_VAULT_PATH','VAULT_FILE_MODE','LOG_LEVEL'
]
