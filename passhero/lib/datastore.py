"""Byte transport for the encrypted vault file.

A datastore knows nothing about encryption or the entry format; it only
hands out a readable and a writable binary stream.
"""
from __future__ import annotations
import os, logging, tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, ContextManager, Iterator
from config.settings import VAULT_FILE_MODE

log = logging.getLogger(__name__)

class DatastoreUnavailable(OSError):
	pass

class EncryptedDatastore(ABC):
	"""Supplies streams from which encrypted entries are read and to which they are stored."""

	@abstractmethod
	def open_reader(self) -> ContextManager[BinaryIO]:
		"""Context manager yielding a binary stream positioned at the start of the data."""

	@abstractmethod
	def open_writer(self) -> ContextManager[BinaryIO]:
		"""Context manager yielding a binary stream that replaces the whole content on exit."""

class FileDatastore(EncryptedDatastore):
	"""Datastore backed by a flat file.

	The file must already exist and be a regular file with read and write
	permission; see :func:`ensure_datastore_file` to create one. Writes go to
	a sibling temp file that is moved over the target once fully written.
	"""

	def __init__(self, path: Path | str):
		self.path = Path(path)
		if not self.path.exists():
			raise DatastoreUnavailable(f'Vault file does not exist: {self.path}')
		if not self.path.is_file():
			raise DatastoreUnavailable(f'Vault path is not a regular file: {self.path}')
		if not os.access(self.path, os.R_OK | os.W_OK):
			raise DatastoreUnavailable(f'Vault file needs read and write permission: {self.path}')

	def __repr__(self) -> str:
		return f'FileDatastore({str(self.path)!r})'

	@contextmanager
	def open_reader(self) -> Iterator[BinaryIO]:
		try:
			f = open(self.path, 'rb')
		except OSError as e:
			raise DatastoreUnavailable(f'Cannot read vault file {self.path}: {e}') from e
		with f:
			yield f

	@contextmanager
	def open_writer(self) -> Iterator[BinaryIO]:
		try:
			fd, tmp_name = tempfile.mkstemp(prefix=self.path.name + '.', suffix='.tmp', dir=self.path.parent)
		except OSError as e:
			raise DatastoreUnavailable(f'Cannot write vault file {self.path}: {e}') from e
		tmp = Path(tmp_name)
		try:
			with os.fdopen(fd, 'wb') as f:
				yield f
				f.flush()
				os.fsync(f.fileno())
			try:
				mode = self.path.stat().st_mode & 0o777
			except OSError:
				mode = VAULT_FILE_MODE
			os.chmod(tmp, mode)
			os.replace(tmp, self.path)
		except BaseException:
			tmp.unlink(missing_ok=True)
			raise
		log.debug('Vault file replaced: %s', self.path)

def ensure_datastore_file(path: Path | str) -> Path:
	"""Create an empty vault file (and parent directories) if it does not exist yet."""
	p = Path(path)
	if p.exists():
		return p
	try:
		p.parent.mkdir(parents=True, exist_ok=True)
		fd = os.open(p, os.O_CREAT | os.O_EXCL | os.O_WRONLY, VAULT_FILE_MODE)
		os.close(fd)
	except FileExistsError:
		pass
	except OSError as e:
		raise DatastoreUnavailable(f'Unable to create {p}: {e}') from e
	log.info('Created empty vault file %s', p)
	return p
