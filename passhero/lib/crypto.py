"""Passphrase-based string encryption (PBKDF2 + AES-256-GCM)."""
from __future__ import annotations
import base64, binascii, secrets, struct, threading
from typing import Dict, Tuple
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.backends import default_backend
from config.settings import (
	DEFAULT_ITERATIONS, MAX_ITERATIONS, ITERATIONS_HEADER_LENGTH,
	SALT_LENGTH, KEY_LENGTH, IV_LENGTH, AUTH_TAG_LENGTH
)

_HEADER = struct.Struct('>I')

class CryptoError(Exception):
	pass

class Encryptor:
	"""Encrypts and decrypts text under a single passphrase.

	Tokens are base64 of ``iterations + salt + iv + ciphertext + tag``, the
	iteration count being a big-endian uint32 that is also authenticated.
	``iterations`` only applies to new tokens; decryption always uses the
	count stored in the token. The salt is drawn once per instance and derived
	keys are cached per ``(salt, iterations)``, so a file written by one
	Encryptor decrypts with a single key derivation.
	An instance never changes passphrase; build a new one to re-key.
	"""

	def __init__(self, passphrase: str, iterations: int = DEFAULT_ITERATIONS):
		if not passphrase:
			raise CryptoError("Passphrase empty")
		if not 1 <= iterations <= MAX_ITERATIONS:
			raise CryptoError(f"Iterations must be between 1 and {MAX_ITERATIONS}")
		self._backend = default_backend()
		self._passphrase = passphrase.encode('utf-8')
		self._iterations = iterations
		self._salt = secrets.token_bytes(SALT_LENGTH)
		self._keys: Dict[Tuple[bytes, int], bytes] = {}
		self._keys_lock = threading.Lock()

	@property
	def iterations(self) -> int:
		return self._iterations

	def _key_for(self, salt: bytes, iterations: int) -> bytes:
		with self._keys_lock:
			key = self._keys.get((salt, iterations))
			if key is None:
				kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=KEY_LENGTH, salt=salt, iterations=iterations, backend=self._backend)
				key = kdf.derive(self._passphrase)
				self._keys[(salt, iterations)] = key
			return key

	def encrypt(self, plaintext: str) -> str:
		header = _HEADER.pack(self._iterations)
		key = self._key_for(self._salt, self._iterations)
		iv = secrets.token_bytes(IV_LENGTH)
		cipher = Cipher(algorithms.AES(key), modes.GCM(iv), backend=self._backend)
		enc = cipher.encryptor()
		enc.authenticate_additional_data(header)
		ct = enc.update(plaintext.encode('utf-8')) + enc.finalize()
		return base64.b64encode(header + self._salt + iv + ct + enc.tag).decode('ascii')

	def decrypt(self, token: str) -> str:
		try:
			blob = base64.b64decode(token.encode('ascii'), validate=True)
		except (binascii.Error, UnicodeEncodeError) as e:
			raise CryptoError(f"Malformed token: {e}")
		if len(blob) < ITERATIONS_HEADER_LENGTH + SALT_LENGTH + IV_LENGTH + AUTH_TAG_LENGTH:
			raise CryptoError("Ciphertext too short")
		header = blob[:ITERATIONS_HEADER_LENGTH]
		(iterations,) = _HEADER.unpack(header)
		if not 1 <= iterations <= MAX_ITERATIONS:
			raise CryptoError(f"Unsupported iteration count: {iterations}")
		pos = ITERATIONS_HEADER_LENGTH
		salt = blob[pos:pos + SALT_LENGTH]; pos += SALT_LENGTH
		iv = blob[pos:pos + IV_LENGTH]; pos += IV_LENGTH
		ct = blob[pos:-AUTH_TAG_LENGTH]
		tag = blob[-AUTH_TAG_LENGTH:]
		cipher = Cipher(algorithms.AES(self._key_for(salt, iterations)), modes.GCM(iv, tag), backend=self._backend)
		dec = cipher.decryptor()
		dec.authenticate_additional_data(header)
		try:
			data = dec.update(ct) + dec.finalize()
		except InvalidTag:
			raise CryptoError("Decrypt failed: wrong passphrase or corrupted data")
		try:
			return data.decode('utf-8')
		except UnicodeDecodeError as e:  # pragma: no cover (authenticated data is always ours)
			raise CryptoError(f"Decrypt failed: {e}")
