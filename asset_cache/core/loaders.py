"""
Loaders turn a path into a decoded resource.

The resource manager only knows loaders through ``BaseLoader.load``,
which works with callbacks and may complete on any thread it likes.
The loaders in here do their work on a pool of worker threads.
"""

import abc
from concurrent.futures import Future, ThreadPoolExecutor
import io
import json
import os
from pathlib import Path
import threading
import typing as t
from xml.etree.ElementTree import ElementTree, XMLParser

from loguru import logger

from asset_cache.core.errors import LoaderShutdownError
from asset_cache.core.resource_cache import path_to_string


T = t.TypeVar("T")

OnSuccessCallback = t.Callable[[T], t.Any]
OnLoaderProgressCallback = t.Callable[[t.Any], t.Any]
OnErrorCallback = t.Callable[[BaseException], t.Any]
ReportFunction = t.Callable[[int, int], None]


_BUILTIN_EXTENSION_MAP = {
	"txt": "text",
	"bin": "bytes",
	"xml": "xml",
	"json": "json",
}


def guess_loader_type(path: t.Union[str, Path], default: str = "bytes") -> str:
	"""
	Returns the name of the builtin loader fitting the extension of
	``path``, or ``default`` if there is none.
	"""
	suffix = Path(path).suffix.lstrip(".").lower()
	return _BUILTIN_EXTENSION_MAP.get(suffix, default)


class ReadProgress:
	"""
	Progress event handed to a loader's progress callback while a file
	is being read.
	"""

	__slots__ = ("loaded", "total")

	def __init__(self, loaded: int, total: int) -> None:
		self.loaded = loaded
		self.total = total

	@property
	def ratio(self) -> float:
		return 1.0 if self.total <= 0 else self.loaded / self.total

	def __repr__(self) -> str:
		return f"<{self.__class__.__name__} {self.loaded}/{self.total}>"


class BaseLoader(abc.ABC, t.Generic[T]):
	@abc.abstractmethod
	def load(
		self,
		path: str,
		on_success: OnSuccessCallback[T],
		on_progress: t.Optional[OnLoaderProgressCallback] = None,
		on_error: t.Optional[OnErrorCallback] = None,
	) -> None:
		"""
		Starts loading ``path``.
		Must call exactly one of ``on_success`` and ``on_error``, exactly
		once, at some point in the future. ``on_progress`` may be called
		any amount of times before that.
		"""
		raise NotImplementedError()


class ThreadedLoader(BaseLoader[T]):
	"""
	Loader that runs ``load_sync`` on a thread pool and reports back
	from the worker thread the load finished on.
	"""

	thread_count = 4
	read_chunk_size = 2**16

	def __init__(
		self,
		thread_count: t.Optional[int] = None,
		read_chunk_size: t.Optional[int] = None,
	) -> None:
		if thread_count is not None:
			self.thread_count = thread_count
		if read_chunk_size is not None:
			self.read_chunk_size = read_chunk_size

		self._executor: t.Optional[ThreadPoolExecutor] = None
		self._shut_down = False
		self._lock = threading.Lock()

	def _get_executor(self) -> ThreadPoolExecutor:
		with self._lock:
			if self._shut_down:
				raise LoaderShutdownError(f"{self!r} has been shut down")

			if self._executor is None:
				self._executor = ThreadPoolExecutor(self.thread_count, "AssetLoader")
			return self._executor

	def load(
		self,
		path: str,
		on_success: OnSuccessCallback[T],
		on_progress: t.Optional[OnLoaderProgressCallback] = None,
		on_error: t.Optional[OnErrorCallback] = None,
	) -> None:
		path = path_to_string(path)

		def report(loaded: int, total: int) -> None:
			if on_progress is not None:
				on_progress(ReadProgress(loaded, total))

		future = self._get_executor().submit(self.load_sync, path, report)
		future.add_done_callback(
			lambda future, path=path: self._on_load_complete(future, path, on_success, on_error)
		)

	def _on_load_complete(
		self,
		future: Future,
		path: str,
		on_success: OnSuccessCallback[T],
		on_error: t.Optional[OnErrorCallback],
	) -> None:
		if future.cancelled():
			exc: t.Optional[BaseException] = LoaderShutdownError(
				f"Load of {path!r} was cancelled by loader shutdown"
			)
		else:
			exc = future.exception()

		if exc is not None:
			if on_error is None:
				logger.error(f"Threaded load of {path!r}: {exc}")
			else:
				on_error(exc)
			return

		on_success(future.result())

	def read_file(self, path: str, report: ReportFunction) -> bytes:
		"""
		Reads the file at ``path`` in chunks, calling ``report`` with the
		amount of bytes read so far and the file's size after each one.
		"""
		total = os.path.getsize(path)
		buf = bytearray()
		with open(path, "rb") as f:
			while True:
				chunk = f.read(self.read_chunk_size)
				if not chunk:
					break
				buf += chunk
				report(len(buf), total)
		return bytes(buf)

	@abc.abstractmethod
	def load_sync(self, path: str, report: ReportFunction) -> T:
		"""
		Loads and returns the resource at ``path``. Runs on a worker
		thread; any exception raised is reported as a load failure.
		"""
		raise NotImplementedError()

	def shutdown(self, wait: bool = True) -> None:
		"""
		Stops accepting new loads. Queued loads that have not started
		yet are cancelled and reported as failed.
		"""
		with self._lock:
			self._shut_down = True
			executor = self._executor
			self._executor = None

		if executor is not None:
			executor.shutdown(wait=wait, cancel_futures=True)


class BytesLoader(ThreadedLoader[bytes]):
	def load_sync(self, path: str, report: ReportFunction) -> bytes:
		return self.read_file(path, report)


class TextLoader(ThreadedLoader[str]):
	encoding = "utf-8"

	def load_sync(self, path: str, report: ReportFunction) -> str:
		return self.read_file(path, report).decode(self.encoding)


class JSONLoader(TextLoader):
	def load_sync(self, path: str, report: ReportFunction) -> t.Any:
		return json.loads(super().load_sync(path, report))


class XMLLoader(ThreadedLoader[ElementTree]):
	def load_sync(self, path: str, report: ReportFunction) -> ElementTree:
		et = ElementTree()
		# The encoding declared inside the document wins over anything we'd guess.
		et.parse(io.BytesIO(self.read_file(path, report)), XMLParser())
		return et

