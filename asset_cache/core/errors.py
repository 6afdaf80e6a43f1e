
class AssetCacheError(Exception):
	pass


class UnknownLoaderTypeError(AssetCacheError, KeyError):
	"""
	Raised when a loader type is neither registered nor constructible.
	"""
	pass


class LoadTimeoutError(AssetCacheError, TimeoutError):
	pass


class LoaderShutdownError(AssetCacheError, RuntimeError):
	pass
