"""Vault manager: in-memory password cache backed by an encrypted datastore.

Every stored application name and password is encrypted under the master
passphrase; plaintext only ever lives in memory. Reads are served from the
cache. Mutations update the cache under an exclusive lock and enqueue a
persistence job on a single background worker, which re-encrypts the whole
cache and overwrites the datastore.

Durability: a mutation returns as soon as the cache is updated. If the process
dies before the queued job has run, the file on disk lags behind memory. Call
:meth:`VaultManager.close` (or :meth:`VaultManager.flush`) before exiting.
"""
from __future__ import annotations
import logging, threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Dict, List, Optional
from config.settings import DEFAULT_ITERATIONS
from .crypto import Encryptor, CryptoError
from .datastore import EncryptedDatastore, FileDatastore
from .generator import AsciiPasswordGenerator
from .properties import dump_properties, load_properties, PropertiesError
from .rwlock import ReadWriteLock

log = logging.getLogger(__name__)

class VaultError(Exception): ...
class InvalidMasterPassphrase(VaultError): ...
class NoSuchApplication(VaultError, KeyError): ...
class PersistenceFailed(VaultError): ...

def _check_name(name: str) -> None:
	if not isinstance(name, str) or not name:
		raise ValueError('application name must be a non-empty string')

class VaultManager:
	"""Manages CRUD operations on application passwords.

	Args:
		datastore: where encrypted entries are read from and written to.
		master_passphrase: passphrase the existing entries were encrypted with,
			or a new one if the datastore is empty.
		generator: password generator; defaults to 20-30 printable ASCII chars.
		iterations: PBKDF2 iterations for keys derived from the passphrase.

	Raises:
		InvalidMasterPassphrase: the passphrase is empty or cannot decrypt the
			stored entries. No partially loaded manager is ever returned.
		DatastoreUnavailable: the datastore cannot be read.
	"""

	def __init__(self, datastore: EncryptedDatastore, master_passphrase: str,
			generator: Optional[AsciiPasswordGenerator] = None, iterations: int = DEFAULT_ITERATIONS):
		if not master_passphrase:
			raise InvalidMasterPassphrase('Master passphrase cannot be empty')
		self._datastore = datastore
		self._iterations = iterations
		self._generator = generator or AsciiPasswordGenerator()
		self._encryptor = Encryptor(master_passphrase, iterations)
		self._passwords: Dict[str, str] = self._load_existing_passwords()
		self._lock = ReadWriteLock()
		self._closed = False
		self._last_job: Optional[Future] = None
		self._last_error: Optional[PersistenceFailed] = None
		self._status_lock = threading.Lock()
		self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='passhero-persist')
		log.info('Vault loaded with %d entries from %r', len(self._passwords), datastore)

	@classmethod
	def from_path(cls, path: Path | str, master_passphrase: str, **kwargs) -> 'VaultManager':
		return cls(FileDatastore(path), master_passphrase, **kwargs)

	def _load_existing_passwords(self) -> Dict[str, str]:
		with self._datastore.open_reader() as stream:
			try:
				encrypted = load_properties(stream)
			except (PropertiesError, UnicodeDecodeError) as e:
				raise InvalidMasterPassphrase(f'Vault file is not readable: {e}') from e
		passwords: Dict[str, str] = {}
		try:
			for enc_name, enc_password in encrypted.items():
				passwords[self._encryptor.decrypt(enc_name)] = self._encryptor.decrypt(enc_password)
		except CryptoError as e:
			raise InvalidMasterPassphrase('Invalid master passphrase') from e
		return passwords

	# -- context management -------------------------------------------------

	def __enter__(self) -> 'VaultManager':
		return self

	def __exit__(self, *exc) -> None:
		self.close()

	def close(self) -> None:
		"""Drain pending persistence jobs and stop the worker. Safe to call twice."""
		with self._lock.write_locked():
			if self._closed:
				return
			self._closed = True
		self._executor.shutdown(wait=True)
		log.debug('Vault manager closed')

	def flush(self, timeout: Optional[float] = None) -> bool:
		"""Wait for every job queued before this call, from any thread.

		Returns True if the most recent of those jobs succeeded, False if it
		failed or did not finish within ``timeout``.
		"""
		with self._lock.read_locked():
			job = self._last_job
		if job is None:
			return True
		done, _ = wait([job], timeout=timeout)
		return bool(done) and job.result() is None

	@property
	def last_persistence_error(self) -> Optional[PersistenceFailed]:
		"""Failure of the most recently finished job, or None if it succeeded."""
		with self._status_lock:
			return self._last_error

	# -- reads ---------------------------------------------------------------

	def list_applications(self) -> List[str]:
		with self._lock.read_locked():
			return list(self._passwords)

	def has_password(self, name: str) -> bool:
		_check_name(name)
		with self._lock.read_locked():
			return name in self._passwords

	def get_plaintext_password(self, name: str) -> Optional[str]:
		_check_name(name)
		with self._lock.read_locked():
			return self._passwords.get(name)

	# -- writes --------------------------------------------------------------

	def generate_password(self, name: str) -> None:
		"""Generate and store a new password, silently replacing any existing one."""
		_check_name(name)
		with self._lock.write_locked():
			self._ensure_open()
			self._passwords[name] = self._generator.generate()
			self._enqueue_persist()

	def change_password(self, name: str) -> None:
		"""Replace an existing password with a new one that differs from it."""
		_check_name(name)
		with self._lock.write_locked():
			self._ensure_open()
			existing = self._passwords.get(name)
			if existing is None:
				raise NoSuchApplication(f'Cannot change password for unknown application: {name}')
			new_password = self._generator.generate()
			while new_password == existing:
				new_password = self._generator.generate()
			self._passwords[name] = new_password
			self._enqueue_persist()

	def delete_password(self, name: str) -> bool:
		_check_name(name)
		with self._lock.write_locked():
			self._ensure_open()
			if self._passwords.pop(name, None) is None:
				return False
			self._enqueue_persist()
			return True

	def change_master_password(self, new_passphrase: str) -> None:
		"""Re-key: every later persistence job encrypts under the new passphrase."""
		if not new_passphrase:
			raise InvalidMasterPassphrase('Master passphrase cannot be empty')
		# Exclusive, so no job can snapshot a cache/key pair that straddles the swap.
		with self._lock.write_locked():
			self._ensure_open()
			self._encryptor = Encryptor(new_passphrase, self._iterations)
			self._enqueue_persist()
		log.info('Master passphrase changed')

	# -- persistence ---------------------------------------------------------

	def _ensure_open(self) -> None:
		if self._closed:
			raise VaultError('Vault manager is closed')

	def _enqueue_persist(self) -> None:
		# caller holds the write lock
		self._last_job = self._executor.submit(self._store_passwords)

	def _store_passwords(self) -> Optional[PersistenceFailed]:
		error = None
		try:
			with self._lock.read_locked():
				encryptor = self._encryptor
				encrypted = {encryptor.encrypt(name): encryptor.encrypt(password)
					for name, password in self._passwords.items()}
			with self._datastore.open_writer() as stream:
				dump_properties(encrypted, stream)
		except Exception as e:
			error = PersistenceFailed(f'Error storing passwords: {e}')
			log.warning('Error storing encrypted passwords to %r', self._datastore, exc_info=True)
		else:
			log.info('Encrypted passwords saved to %r', self._datastore)
		with self._status_lock:
			self._last_error = error
		return error
