
from concurrent.futures import Future
from pathlib import Path
import queue
import threading
from time import perf_counter, sleep
import typing as t

from loguru import logger
from pyglet import clock

from asset_cache.config import LoaderConfig
from asset_cache.core.errors import LoadTimeoutError
from asset_cache.core.loader_registry import LoaderFactory, LoaderRegistry
from asset_cache.core.loaders import BytesLoader, JSONLoader, TextLoader, XMLLoader
from asset_cache.core.loading import (
	LoadingProcedure, OnErrorCallback, OnLoadCallback, OnProgressCallback, PendingQueue,
	PendingRequest, ResourceConfig,
)
from asset_cache.core.resource_cache import LOADING, CacheStats, ResourceCache, path_to_string

if t.TYPE_CHECKING:
	from asset_cache.core.loaders import BaseLoader, OnLoaderProgressCallback


def _call_all(*funcs: t.Callable[[], t.Any]) -> None:
	"""
	Calls each of ``funcs``, even if earlier ones raise. The first
	exception raised is re-raised after all of them ran.
	"""
	error: t.Optional[Exception] = None
	for func in funcs:
		try:
			func()
		except Exception as e:
			if error is None:
				error = e
	if error is not None:
		raise error


class _InFlight:
	"""
	Bookkeeping for a resource currently being loaded.
	"""

	__slots__ = ("future", "waiters")

	def __init__(self) -> None:
		self.future: Future = Future()
		self.waiters: t.List[OnLoadCallback] = []
		"""
		``on_load`` callbacks of batch requests that hit this resource
		while it was loading. Only called if the load succeeds.
		"""


class _Operation:
	__slots__ = ("loader", "path", "on_load", "in_flight")

	def __init__(
		self,
		loader: "BaseLoader",
		path: str,
		on_load: t.Optional[OnLoadCallback],
		in_flight: _InFlight,
	) -> None:
		self.loader = loader
		self.path = path
		self.on_load = on_load
		self.in_flight = in_flight


class ResourceManager:
	"""
	Caches resources by path and loads them through loaders, either one
	at a time or in batches that report their combined progress.

	All state belongs to the thread that created the manager. Loaders
	may report back from any thread; such reports are relayed and only
	processed once the manager is polled on its own thread, through
	``poll``, ``wait`` or ticks of the pyglet clock it was given.
	"""

	def __init__(
		self,
		pyglet_clock: t.Optional[clock.Clock] = None,
		config: t.Optional[LoaderConfig] = None,
	) -> None:
		self.config = LoaderConfig.get_default() if config is None else config
		self._clock = clock.Clock() if pyglet_clock is None else pyglet_clock

		self._owner_thread = threading.get_ident()
		self._relay_queue: "queue.SimpleQueue[t.Tuple[t.Callable, t.Tuple]]" = \
			queue.SimpleQueue()

		self.loaders = LoaderRegistry()
		self.cache = ResourceCache()
		self.pending = PendingQueue()
		self._in_flight: t.Dict[str, _InFlight] = {}

		self._on_progress: t.Optional[OnProgressCallback] = None
		self._on_error: t.Optional[OnErrorCallback] = None

		self._running_loading_procedures: t.List[LoadingProcedure] = []

		self._register_builtin_loaders()
		self._clock.schedule(self._poll_scheduled)

	def _register_builtin_loaders(self) -> None:
		cfg = self.config
		for name, loader_cls in (
			("bytes", BytesLoader),
			("text", TextLoader),
			("json", JSONLoader),
			("xml", XMLLoader),
		):
			self.loaders.register(
				name,
				lambda loader_cls=loader_cls: loader_cls(cfg.loader_threads, cfg.read_chunk_size),
			)

	# === Cache === #

	def add(self, path: t.Union[str, Path], value: t.Any) -> None:
		self.cache.add(path_to_string(path), value)

	def get(self, path: t.Union[str, Path]) -> t.Any:
		"""
		Returns the cached value for ``path``, ``LOADING`` if it is being
		loaded, or ``None`` if it's not in the cache.
		"""
		return self.cache.get(path_to_string(path))

	def remove(self, *paths: t.Union[str, Path]) -> None:
		self.cache.remove(*(path_to_string(p) for p in paths))

	def get_cache_stats(self) -> CacheStats:
		return self.cache.get_stats()

	# === Loaders === #

	def register_loader(self, loader_type: t.Hashable, factory: LoaderFactory) -> None:
		self.loaders.register(loader_type, factory)

	def get_loader(self, loader_type: t.Hashable) -> "BaseLoader":
		return self.loaders.get_loader(loader_type)

	def remove_loader(self, loader_type: t.Hashable) -> None:
		self.loaders.remove_loader(loader_type)

	def set_on_progress_default(self, on_progress: t.Optional[OnProgressCallback]) -> None:
		self._on_progress = on_progress

	def set_on_error_default(self, on_error: t.Optional[OnErrorCallback]) -> None:
		self._on_error = on_error

	# === Thread relay === #

	def _relayed(self, func: t.Callable[..., t.Any]) -> t.Callable[..., None]:
		"""
		Wraps ``func`` so that calls from foreign threads are deferred
		to the owner thread's next poll. Calls made on the owner thread
		run immediately.
		"""
		def relay(*args: t.Any) -> None:
			if threading.get_ident() == self._owner_thread:
				func(*args)
			else:
				self._relay_queue.put((func, args))

		return relay

	def poll(self) -> int:
		"""
		Runs all loader callbacks relayed from other threads so far.
		Must be called on the thread that created the manager.
		Returns the amount of callbacks that were run.
		"""
		if threading.get_ident() != self._owner_thread:
			raise RuntimeError("ResourceManager may only be polled from its owner thread")

		count = 0
		while True:
			try:
				func, args = self._relay_queue.get_nowait()
			except queue.Empty:
				break
			func(*args)
			count += 1
		return count

	def _poll_scheduled(self, _dt: float) -> None:
		self.poll()

	def wait(
		self,
		target: t.Union[Future, LoadingProcedure],
		timeout: t.Optional[float] = None,
	) -> t.Any:
		"""
		Ticks the manager's clock until ``target`` is done and returns
		its result.

		:raises LoadTimeoutError: If ``timeout`` seconds pass before
		that.
		"""
		future = target.future if isinstance(target, LoadingProcedure) else target
		deadline = None if timeout is None else perf_counter() + timeout

		while True:
			self._clock.call_scheduled_functions(self._clock.update_time())
			if future.done():
				return future.result()

			if deadline is not None and perf_counter() >= deadline:
				raise LoadTimeoutError(f"Load did not complete within {timeout}s")
			sleep(self.config.poll_interval)

	# === Immediate loading === #

	def load(
		self,
		loader_type: t.Hashable,
		path: t.Union[str, Path],
		on_progress: t.Optional["OnLoaderProgressCallback"] = None,
		on_error: t.Optional[OnErrorCallback] = None,
	) -> Future:
		"""
		Loads a single resource through the loader of ``loader_type``,
		unless it is already cached.

		Returns a future resolving with the resource, or with ``None``
		if loading it failed. The failure itself is only passed to
		``on_error``. ``on_progress`` is given to the loader as-is.
		If the resource is being loaded already, the future of that
		load is returned.
		"""
		path = path_to_string(path)

		if self.cache.has(path):
			value = self.cache.get(path)
			if value is LOADING and path in self._in_flight:
				logger.trace(f"Joining in-flight load of {path!r}")
				return self._in_flight[path].future

			logger.trace(f"Cache hit for {path!r}")
			future: Future = Future()
			future.set_result(value)
			return future

		loader = self.loaders.get_loader(loader_type)
		in_flight = self._begin_load(path)
		self._issue(
			loader,
			path,
			self._relayed(lambda result: self._on_load_success(path, in_flight, result)),
			None if on_progress is None else self._relayed(on_progress),
			self._relayed(lambda exc: self._on_load_failure(path, in_flight, exc, on_error)),
		)
		return in_flight.future

	def _begin_load(self, path: str) -> _InFlight:
		self.cache.add(path, LOADING)
		in_flight = _InFlight()
		self._in_flight[path] = in_flight
		return in_flight

	def _finish_load(self, path: str, in_flight: _InFlight) -> bool:
		"""
		Drops the in-flight record of ``path`` if it still is ``in_flight``
		and returns whether it was. If not, the key was removed and loaded
		anew in the meantime, and its cache entry belongs to the newer load.
		"""
		if self._in_flight.get(path) is in_flight:
			del self._in_flight[path]
			return True
		return False

	def _issue(
		self,
		loader: "BaseLoader",
		path: str,
		on_success: t.Callable[[t.Any], None],
		on_progress: t.Optional[t.Callable[[t.Any], None]],
		on_error: t.Callable[[BaseException], None],
	) -> None:
		logger.trace(f"Loading {path!r} with {loader!r}")

		reported = False
		def mark_reported(func: t.Callable[[t.Any], None]) -> t.Callable[[t.Any], None]:
			def call(arg: t.Any) -> None:
				nonlocal reported
				reported = True
				func(arg)
			return call

		try:
			loader.load(path, mark_reported(on_success), on_progress, mark_reported(on_error))
		except Exception as e:
			# Exceptions from callbacks a synchronous loader ran are not the loader's fault
			if reported:
				raise
			on_error(e)

	def _on_load_success(self, path: str, in_flight: _InFlight, result: t.Any) -> None:
		if self._finish_load(path, in_flight):
			self.cache.add(path, result)
		self._resolve_in_flight(in_flight, result, True)

	def _on_load_failure(
		self,
		path: str,
		in_flight: _InFlight,
		exc: BaseException,
		on_error: t.Optional[OnErrorCallback],
	) -> None:
		if self._finish_load(path, in_flight):
			self.cache.remove(path)
		_call_all(
			lambda: self._report_error(path, exc, on_error),
			lambda: self._resolve_in_flight(in_flight, None, False),
		)

	def _resolve_in_flight(self, in_flight: _InFlight, result: t.Any, succeeded: bool) -> None:
		waiters = in_flight.waiters
		in_flight.waiters = []
		in_flight.future.set_result(result)
		if succeeded:
			_call_all(*(lambda on_load=on_load: on_load(result) for on_load in waiters))

	def _report_error(
		self, path: str, exc: BaseException, on_error: t.Optional[OnErrorCallback]
	) -> None:
		if on_error is None:
			logger.error(f"Failed loading {path!r}: {exc}")
		else:
			on_error(exc)

	# === Batch loading === #

	def preload(
		self,
		loader_type: t.Hashable,
		*resources: t.Union[str, Path, ResourceConfig, t.Tuple[str, OnLoadCallback], t.Dict],
	) -> None:
		"""
		Queues the given resources to be loaded by the next call to
		``load_pending``. Each resource is either a path or a path with
		an ``on_load`` callback, as a ``ResourceConfig``, a
		``(path, on_load)`` tuple or a ``{"path": ..., "on_load": ...}``
		dict.
		"""
		self.pending.push(
			PendingRequest(loader_type, [ResourceConfig.coerce(r) for r in resources])
		)

	def has_pending(self) -> bool:
		return len(self.pending) > 0

	def requires_loading(self) -> bool:
		"""
		Returns whether draining the pending queue right now would
		start any loads, which is the case if any queued path is
		missing from the cache.
		"""
		return any(
			not self.cache.has(res.path)
			for request in self.pending
			for res in request.resources
		)

	def load_pending(
		self,
		on_progress: t.Optional[OnProgressCallback] = None,
		on_error: t.Optional[OnErrorCallback] = None,
	) -> LoadingProcedure:
		"""
		Drains the pending queue and loads every queued resource that
		is not cached yet, all at once.

		``on_progress`` receives the ratio of completed to started loads
		each time a load completes, failed ones included. ``on_error``
		receives the exception of each failed load. Both fall back to
		the defaults set on the manager if not given.

		Returns a ``LoadingProcedure`` whose ``future`` resolves once all
		started loads have completed. Failed loads never fail it.
		"""
		lproc = LoadingProcedure(
			self._on_progress if on_progress is None else on_progress,
			self._on_error if on_error is None else on_error,
		)

		operations: t.List[_Operation] = []
		try:
			while (request := self.pending.pop()) is not None:
				loader = self.loaders.get_loader(request.loader_type)
				for res in request.resources:
					if self.cache.has(res.path):
						self._attach_cached(res)
						continue

					lproc._add_operation()
					operations.append(
						_Operation(loader, res.path, res.on_load, self._begin_load(res.path))
					)
		except Exception:
			# Nothing was issued yet, don't leave placeholders behind
			for op in operations:
				if self._finish_load(op.path, op.in_flight):
					self.cache.remove(op.path)
			raise

		lproc._seal()
		if not operations:
			return lproc

		logger.debug(f"Batch loading {len(operations)} resources")
		self._running_loading_procedures.append(lproc)
		lproc.future.add_done_callback(lambda _, lproc=lproc: self._on_procedure_done(lproc))

		# A callback raising during a synchronous load must not keep the
		# remaining operations from being issued
		_call_all(*(
			lambda op=op: self._issue(
				op.loader,
				op.path,
				self._relayed(lambda result: self._on_batch_success(lproc, op, result)),
				None,
				self._relayed(lambda exc: self._on_batch_failure(lproc, op, exc)),
			)
			for op in operations
		))

		return lproc

	def _attach_cached(self, res: ResourceConfig) -> None:
		if res.on_load is None:
			return

		if self.cache.is_loading(res.path) and res.path in self._in_flight:
			self._in_flight[res.path].waiters.append(res.on_load)
		else:
			res.on_load(self.cache.get(res.path))

	def _on_batch_success(self, lproc: LoadingProcedure, op: _Operation, result: t.Any) -> None:
		if self._finish_load(op.path, op.in_flight):
			self.cache.add(op.path, result)
		_call_all(
			lambda: lproc._operation_done(op.path, False),
			lambda: None if op.on_load is None else op.on_load(result),
			lambda: self._resolve_in_flight(op.in_flight, result, True),
			lproc._check_done,
		)

	def _on_batch_failure(
		self, lproc: LoadingProcedure, op: _Operation, exc: BaseException
	) -> None:
		if self._finish_load(op.path, op.in_flight):
			self.cache.remove(op.path)
		_call_all(
			lambda: self._report_error(op.path, exc, lproc.on_error),
			lambda: lproc._operation_done(op.path, True),
			lambda: self._resolve_in_flight(op.in_flight, None, False),
			lproc._check_done,
		)

	def _on_procedure_done(self, lproc: LoadingProcedure) -> None:
		progress = lproc.get_progress()
		logger.debug(
			f"Batch load done: {progress.loaded - progress.failed}/{progress.requested} "
			f"succeeded"
		)
		self._running_loading_procedures.remove(lproc)

	# === Lifecycle === #

	def shutdown(self, timeout: t.Optional[float] = None) -> None:
		"""
		Shuts down all loaders, then keeps polling until every running
		batch load has completed.

		:raises LoadTimeoutError: If batch loads are still running after
		``timeout`` seconds. Loaders that never report back will cause
		this, or hang forever without a timeout.
		"""
		self.loaders.shutdown()
		deadline = None if timeout is None else perf_counter() + timeout
		while self._running_loading_procedures:
			if deadline is not None and perf_counter() >= deadline:
				raise LoadTimeoutError(
					f"{len(self._running_loading_procedures)} batch loads still running"
				)
			self._clock.call_scheduled_functions(self._clock.update_time())
			sleep(self.config.poll_interval)
		self._clock.unschedule(self._poll_scheduled)

	def clear_caches(self) -> None:
		"""
		Drops all cached resources. Loads still running will put their
		results into the cache once they finish.
		"""
		self.cache.clear()
