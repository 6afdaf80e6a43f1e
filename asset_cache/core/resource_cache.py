
from pathlib import Path
import typing as t


class _Loading:
	"""
	Type of the in-progress placeholder. There is exactly one instance,
	``LOADING``.
	"""

	__slots__ = ()

	_instance: t.Optional["_Loading"] = None

	def __new__(cls) -> "_Loading":
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __repr__(self) -> str:
		return "LOADING"

	def __bool__(self) -> bool:
		return False


LOADING = _Loading()
"""
Cache value of a resource whose load has started but not yet
resolved.
"""


def path_to_string(path: t.Union[str, Path]) -> str:
	"""
	Possibly stringifies a path.
	Cache keys are always strings, no matter what callers pass in.
	"""
	return path if isinstance(path, str) else str(path)


class CacheStats:
	"""
	Cheap dataclass describing a ``ResourceCache`` at some point in time.
	"""

	__slots__ = ("object_count", "loading_count")

	def __init__(self) -> None:
		self.object_count: int = 0
		"""
		The amount of resolved values in the cache.
		"""

		self.loading_count: int = 0
		"""
		The amount of keys currently holding the ``LOADING`` placeholder.
		"""

	def copy(self) -> "CacheStats":
		c = CacheStats()
		c.object_count = self.object_count
		c.loading_count = self.loading_count
		return c

	def __eq__(self, o: object) -> bool:
		if isinstance(o, CacheStats):
			return (
				o.object_count == self.object_count and
				o.loading_count == self.loading_count
			)
		return NotImplemented

	def __repr__(self) -> str:
		return (
			f"<{self.__class__.__name__} objects={self.object_count} "
			f"loading={self.loading_count}>"
		)


class ResourceCache:
	"""
	Plain mapping of resource keys to values. It does not care which
	loader produced a value, or whether one did at all; values may be
	put in manually.
	"""

	def __init__(self) -> None:
		self._resources: t.Dict[str, t.Any] = {}

	def add(self, key: str, value: t.Any) -> None:
		"""
		Stores ``value`` under ``key``, replacing anything that was there,
		the ``LOADING`` placeholder included.
		"""
		self._resources[key] = value

	def get(self, key: str) -> t.Any:
		"""
		Returns the value stored under ``key``, which may be ``LOADING``.
		Returns ``None`` if the key is not present.
		"""
		return self._resources.get(key)

	def has(self, key: str) -> bool:
		return key in self._resources

	def is_loading(self, key: str) -> bool:
		return self._resources.get(key, None) is LOADING

	def remove(self, *keys: str) -> None:
		for key in keys:
			self._resources.pop(key, None)

	def clear(self) -> None:
		self._resources.clear()

	def get_stats(self) -> CacheStats:
		stats = CacheStats()
		for v in self._resources.values():
			if v is LOADING:
				stats.loading_count += 1
			else:
				stats.object_count += 1
		return stats

	def __contains__(self, key: object) -> bool:
		return key in self._resources

	def __len__(self) -> int:
		return len(self._resources)
