import typing as t

from pyglet import clock
import pytest

from asset_cache.config import LoaderConfig
from asset_cache.core.loaders import BaseLoader
from asset_cache.core.resource_manager import ResourceManager


class ManualLoader(BaseLoader):
	"""
	Loader that only remembers what it was asked to load. Tests decide
	when and how each load completes.
	"""

	instances = 0

	def __init__(self) -> None:
		ManualLoader.instances += 1
		self.calls: t.List[str] = []
		# Loads of the same path complete oldest first
		self._callbacks: t.Dict[str, t.List[t.Tuple[t.Callable, t.Optional[t.Callable], t.Optional[t.Callable]]]] = {}

	def load(self, path, on_success, on_progress=None, on_error=None) -> None:
		self.calls.append(path)
		self._callbacks.setdefault(path, []).append((on_success, on_progress, on_error))

	def pending(self) -> t.List[str]:
		return list(self._callbacks)

	def progress(self, path: str, event: t.Any) -> None:
		on_progress = self._callbacks[path][0][1]
		if on_progress is not None:
			on_progress(event)

	def _take(self, path: str) -> t.Tuple[t.Callable, t.Optional[t.Callable], t.Optional[t.Callable]]:
		callbacks = self._callbacks[path]
		entry = callbacks.pop(0)
		if not callbacks:
			del self._callbacks[path]
		return entry

	def succeed(self, path: str, result: t.Any = None) -> None:
		on_success, _, _ = self._take(path)
		on_success(f"decoded:{path}" if result is None else result)

	def fail(self, path: str, exc: t.Optional[BaseException] = None) -> None:
		_, _, on_error = self._take(path)
		on_error(OSError(f"cannot load {path}") if exc is None else exc)


class SyncLoader(BaseLoader):
	"""
	Loader completing every load before ``load`` returns.
	"""

	def __init__(self) -> None:
		self.calls: t.List[str] = []

	def load(self, path, on_success, on_progress=None, on_error=None) -> None:
		self.calls.append(path)
		if path.startswith("bad"):
			on_error(ValueError(path))
		else:
			on_success(path.upper())


@pytest.fixture
def pyglet_clock() -> clock.Clock:
	return clock.Clock()


@pytest.fixture
def manager(pyglet_clock) -> t.Iterator[ResourceManager]:
	config = LoaderConfig(loader_threads=2, read_chunk_size=4, poll_interval=0.001)
	m = ResourceManager(pyglet_clock, config)
	yield m
	m.loaders.shutdown()


@pytest.fixture
def manual(manager) -> ManualLoader:
	return manager.get_loader(ManualLoader)
