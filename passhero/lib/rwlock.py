"""Readers-writer lock built on threading.Condition."""
from __future__ import annotations
import threading
from contextlib import contextmanager
from typing import Iterator

class ReadWriteLock:
	"""Many concurrent readers or one writer.

	Writer-preferring: once a writer is waiting, new readers queue behind it.
	Not reentrant; a thread holding the write lock must not take the read lock.
	"""

	def __init__(self):
		self._cond = threading.Condition(threading.Lock())
		self._readers = 0
		self._writer = False
		self._writers_waiting = 0

	def acquire_read(self) -> None:
		with self._cond:
			while self._writer or self._writers_waiting:
				self._cond.wait()
			self._readers += 1

	def release_read(self) -> None:
		with self._cond:
			if self._readers <= 0:
				raise RuntimeError('release_read without acquire_read')
			self._readers -= 1
			if self._readers == 0:
				self._cond.notify_all()

	def acquire_write(self) -> None:
		with self._cond:
			self._writers_waiting += 1
			try:
				while self._writer or self._readers:
					self._cond.wait()
			except BaseException:
				self._writers_waiting -= 1
				self._cond.notify_all()
				raise
			self._writers_waiting -= 1
			self._writer = True

	def release_write(self) -> None:
		with self._cond:
			if not self._writer:
				raise RuntimeError('release_write without acquire_write')
			self._writer = False
			self._cond.notify_all()

	@contextmanager
	def read_locked(self) -> Iterator[None]:
		self.acquire_read()
		try:
			yield
		finally:
			self.release_read()

	@contextmanager
	def write_locked(self) -> Iterator[None]:
		self.acquire_write()
		try:
			yield
		finally:
			self.release_write()
