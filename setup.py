#!/usr/bin/env python3

from setuptools import find_packages, setup


if __name__ == "__main__":
	setup(
		name = "PyAssetCache",
		version = "0.1.0",
		description = "Path-keyed resource cache with batched, progress-reporting loading.",
		packages = find_packages(include=("asset_cache", "asset_cache.*")),
		py_modules = ["run"],
		python_requires = ">=3.9",
		install_requires = [
			"loguru",
			"pyglet>=2.0",
			"python-dotenv",
			"schema",
		],
		extras_require = {
			"test": ["pytest"],
		},
	)
