
from concurrent.futures import Future
from pathlib import Path
import typing as t

from asset_cache.core.resource_cache import path_to_string


OnLoadCallback = t.Callable[[t.Any], t.Any]
OnProgressCallback = t.Callable[[float], t.Any]
OnErrorCallback = t.Callable[[BaseException], t.Any]


class ResourceConfig:
	"""
	A path to be preloaded together with a function that receives the
	loaded resource.
	"""

	__slots__ = ("path", "on_load")

	def __init__(
		self,
		path: t.Union[str, Path],
		on_load: t.Optional[OnLoadCallback] = None,
	) -> None:
		self.path = path_to_string(path)
		self.on_load = on_load

	@classmethod
	def coerce(cls, item: t.Any) -> "ResourceConfig":
		"""
		Turns one of the things ``preload`` accepts into a
		``ResourceConfig``: A path, a ``(path, on_load)`` tuple, a dict
		with ``path`` and optionally ``on_load`` keys, or a
		``ResourceConfig``.
		"""
		if isinstance(item, cls):
			return item
		if isinstance(item, (str, Path)):
			return cls(item)
		if isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], (str, Path)):
			return cls(item[0], item[1])
		if isinstance(item, dict) and isinstance(item.get("path"), (str, Path)):
			return cls(item["path"], item.get("on_load"))

		raise TypeError(f"Can not preload {item!r}, expected a path or resource config")

	def __repr__(self) -> str:
		return f"<{self.__class__.__name__} {self.path!r}>"


class PendingRequest:
	__slots__ = ("loader_type", "resources")

	def __init__(self, loader_type: t.Hashable, resources: t.Sequence[ResourceConfig]) -> None:
		self.loader_type = loader_type
		self.resources = resources


class PendingQueue:
	"""
	Stack of requests made by ``preload`` calls that have not been
	drained by a batch load yet.
	"""

	def __init__(self) -> None:
		self._requests: t.List[PendingRequest] = []

	def push(self, request: PendingRequest) -> None:
		self._requests.append(request)

	def pop(self) -> t.Optional[PendingRequest]:
		"""
		Removes and returns the most recently pushed request, or
		``None`` if there are none.
		"""
		return self._requests.pop() if self._requests else None

	def __iter__(self) -> t.Iterator[PendingRequest]:
		return iter(self._requests)

	def __len__(self) -> int:
		return len(self._requests)


class LoadingProgress:
	def __init__(self, req: int, lod: int, fail: int, llod: str) -> None:
		self.requested = req
		"""
		The amount of loads started by the batch load. Resources that
		were already cached are not counted.
		"""

		self.loaded = lod
		"""
		The amount of loads that completed, whether they succeeded or
		failed.
		"""

		self.failed = fail
		"""
		The amount of loads that failed.
		"""

		self.last_loaded = llod
		"""
		The path of the resource most recently loaded. Nothing more
		than a fancy string for loading screen decoration.
		"""

	@property
	def ratio(self) -> float:
		return 1.0 if self.requested == 0 else self.loaded / self.requested


class LoadingProcedure:
	"""
	Represents one drain of the pending queue and keeps count of how
	many of its loads have completed.
	"""

	def __init__(
		self,
		on_progress: t.Optional[OnProgressCallback],
		on_error: t.Optional[OnErrorCallback],
	) -> None:
		self.on_progress = on_progress
		self.on_error = on_error

		self.future: "Future[t.List[None]]" = Future()
		"""
		Resolves with a list containing one ``None`` per started load
		once all of them completed.
		"""

		self._requested = 0
		self._loaded = 0
		self._failed = 0
		self._last_loaded = ""
		self._sealed = False

	def _add_operation(self) -> None:
		assert not self._sealed
		self._requested += 1

	def _seal(self) -> None:
		"""
		Marks the amount of requested loads as final.
		"""
		self._sealed = True
		self._check_done()

	def _operation_done(self, path: str, failed: bool) -> None:
		"""
		Counts a completed load and reports the new progress ratio.
		"""
		assert self._loaded < self._requested

		self._loaded += 1
		self._last_loaded = path
		if failed:
			self._failed += 1

		if self.on_progress is not None:
			self.on_progress(self._loaded / self._requested)

	def _check_done(self) -> None:
		if self._sealed and self._loaded == self._requested and not self.future.done():
			self.future.set_result([None] * self._requested)

	def get_progress(self) -> LoadingProgress:
		return LoadingProgress(self._requested, self._loaded, self._failed, self._last_loaded)

	def is_done(self) -> bool:
		return self.future.done()

	def result(self, timeout: t.Optional[float] = None) -> t.List[None]:
		"""
		Blocks until the procedure is done and returns its result.
		Completions are only delivered while the owning manager is being
		polled, so only call this from a thread other than the manager's
		owner. On the owner thread, use ``ResourceManager.wait``.
		"""
		return self.future.result(timeout)
