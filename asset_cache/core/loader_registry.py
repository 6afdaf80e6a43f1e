
import typing as t

from loguru import logger

from asset_cache.core.errors import UnknownLoaderTypeError

if t.TYPE_CHECKING:
	from asset_cache.core.loaders import BaseLoader


LoaderFactory = t.Callable[[], "BaseLoader"]


def _shutdown_loader(loader: "BaseLoader") -> None:
	shutdown = getattr(loader, "shutdown", None)
	if shutdown is not None:
		logger.trace(f"Shutting down loader {loader!r}")
		shutdown()


class LoaderRegistry:
	"""
	Hands out one loader instance per loader type, creating it on first
	request.

	A loader type is any hashable identifier. Identifiers registered
	through ``register`` are constructed by their factory; unregistered
	identifiers that are callable (loader classes, mostly) are called
	without arguments.
	"""

	def __init__(self) -> None:
		self._factories: t.Dict[t.Hashable, LoaderFactory] = {}
		self._loaders: t.Dict[t.Hashable, "BaseLoader"] = {}

	def register(self, loader_type: t.Hashable, factory: LoaderFactory) -> None:
		"""
		Binds ``loader_type`` to a zero-argument factory. If an instance
		had already been created for it, it is shut down and dropped
		so the next ``get_loader`` call uses the new factory.
		"""
		if loader_type is None:
			raise TypeError("Loader types may not be `None`!")

		self._factories[loader_type] = factory
		self.remove_loader(loader_type)

	def is_known(self, loader_type: t.Hashable) -> bool:
		return loader_type in self._factories or callable(loader_type)

	def get_loader(self, loader_type: t.Hashable) -> "BaseLoader":
		"""
		Returns the loader instance for ``loader_type``, constructing it
		if it does not exist yet.

		:raises UnknownLoaderTypeError: If ``loader_type`` was never
		registered and can not be called to construct a loader.
		"""
		if loader_type in self._loaders:
			return self._loaders[loader_type]

		if loader_type in self._factories:
			factory = self._factories[loader_type]
		elif callable(loader_type):
			factory = loader_type
		else:
			raise UnknownLoaderTypeError(f"Unknown loader type: {loader_type!r}")

		loader = factory()
		self._loaders[loader_type] = loader
		logger.trace(f"Created loader {loader!r} for {loader_type!r}")
		return loader

	def remove_loader(self, loader_type: t.Hashable) -> None:
		"""
		Forgets the instance created for ``loader_type``, if any, and
		shuts it down if it supports that. Loads still queued on it fail.
		"""
		loader = self._loaders.pop(loader_type, None)
		if loader is not None:
			_shutdown_loader(loader)

	def shutdown(self) -> None:
		"""
		Shuts down every instantiated loader that supports it and
		forgets all of them.
		"""
		loaders = list(self._loaders.values())
		self._loaders.clear()
		for loader in loaders:
			_shutdown_loader(loader)

	def __contains__(self, loader_type: t.Hashable) -> bool:
		return loader_type in self._loaders
