#!/usr/bin/env python3

import argparse
import sys


def main() -> int:
	argparser = argparse.ArgumentParser(
		description = "Loads the given files in one batch and reports on how that went."
	)
	argparser.add_argument(
		"paths",
		nargs = "+",
		help = "Files to load.",
	)
	argparser.add_argument(
		"--less-debug",
		"-l",
		action = "count",
		default = 0,
		help = (
			"Lowers the log level. If this flag isn't specified, everything is logged. "
			"If specified once, trace messages are dropped. If specified more often than "
			"that, only info messages and above remain."
		),
	)
	argparser.add_argument(
		"--type",
		"-t",
		default = None,
		help = (
			"Name of the loader to load all files with (bytes, text, json, xml). "
			"Guessed from each file's extension if not given."
		),
	)
	argparser.add_argument(
		"--config",
		"-c",
		default = None,
		help = (
			"Path to a json config file. If not given, the config is read from "
			"PAC_* environment variables."
		),
	)

	result = argparser.parse_args()

	from loguru import logger

	from asset_cache.config import LoaderConfig
	from asset_cache.core.loaders import guess_loader_type
	from asset_cache.core.resource_manager import ResourceManager
	from asset_cache.log import setup_logging

	setup_logging(2 - result.less_debug)

	config = LoaderConfig.from_env() if result.config is None else LoaderConfig.load(result.config)
	manager = ResourceManager(config=config)

	failed = []
	for path in result.paths:
		manager.preload(result.type or guess_loader_type(path), path)

	lproc = manager.load_pending(
		on_progress = lambda ratio: logger.info(f"Progress: {ratio:>6.1%}"),
		on_error = lambda exc: failed.append(exc),
	)
	try:
		manager.wait(lproc)
	finally:
		manager.shutdown()

	for exc in failed:
		logger.error(f"Load failed: {exc}")

	progress = lproc.get_progress()
	logger.info(f"Loaded {progress.loaded - progress.failed}/{progress.requested} resources.")

	return 1 if failed else 0


if __name__ == "__main__":
	sys.exit(main())
