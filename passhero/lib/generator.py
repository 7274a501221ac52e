"""Random password generation over printable ASCII."""
from __future__ import annotations
import secrets
from config.settings import (
	ABSOLUTE_MIN_CHARS, ABSOLUTE_MAX_CHARS, DEFAULT_MIN_CHARS, DEFAULT_MAX_CHARS, ASCII_MIN, ASCII_MAX
)

class InvalidConfiguration(ValueError):
	pass

class AsciiPasswordGenerator:
	"""Generates passwords of visible ASCII characters ("!" through "~").

	The length is drawn uniformly from ``[min_chars, max_chars]`` and every
	character uniformly from the printable range, using the ``secrets`` CSPRNG.
	"""

	def __init__(self, min_chars: int = DEFAULT_MIN_CHARS, max_chars: int = DEFAULT_MAX_CHARS):
		if min_chars >= max_chars:
			raise InvalidConfiguration('min_chars must be < max_chars')
		if min_chars < ABSOLUTE_MIN_CHARS:
			raise InvalidConfiguration(f'min_chars must be >= {ABSOLUTE_MIN_CHARS}')
		if max_chars > ABSOLUTE_MAX_CHARS:
			raise InvalidConfiguration(f'max_chars must be <= {ABSOLUTE_MAX_CHARS}')
		self.min_chars = min_chars
		self.max_chars = max_chars

	def generate(self) -> str:
		length = _random_in_range(self.min_chars, self.max_chars)
		return ''.join(chr(_random_in_range(ASCII_MIN, ASCII_MAX)) for _ in range(length))

def _random_in_range(lo: int, hi: int) -> int:
	# inclusive on both ends
	return lo + secrets.randbelow(hi - lo + 1)
