"""
PyAssetCache.
Keeps loaded resources around by path and loads new ones through
pluggable loaders, one at a time or in batches with combined progress
reporting.
"""

from asset_cache.config import LoaderConfig
from asset_cache.core.errors import (
	AssetCacheError, LoaderShutdownError, LoadTimeoutError, UnknownLoaderTypeError
)
from asset_cache.core.loaders import (
	BaseLoader, BytesLoader, JSONLoader, ReadProgress, TextLoader,
	ThreadedLoader, XMLLoader, guess_loader_type,
)
from asset_cache.core.loading import LoadingProcedure, LoadingProgress, ResourceConfig
from asset_cache.core.resource_cache import LOADING, CacheStats
from asset_cache.core.resource_manager import ResourceManager


__version__ = "0.1.0"

__all__ = [
	"AssetCacheError",
	"BaseLoader",
	"BytesLoader",
	"CacheStats",
	"JSONLoader",
	"LOADING",
	"LoadTimeoutError",
	"LoaderConfig",
	"LoaderShutdownError",
	"LoadingProcedure",
	"LoadingProgress",
	"ReadProgress",
	"ResourceConfig",
	"ResourceManager",
	"TextLoader",
	"ThreadedLoader",
	"UnknownLoaderTypeError",
	"XMLLoader",
	"guess_loader_type",
]
