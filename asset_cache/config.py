import json
import os
from pathlib import Path
import typing as t

from dotenv import load_dotenv
from loguru import logger
from schema import And, Schema, Use


ENV_PREFIX = "PAC_"


def _positive_int(v: int) -> bool:
	# bool is an int subclass, True would otherwise pass as 1
	return not isinstance(v, bool) and v > 0


class LoaderConfig:
	"""
	Stores the knobs of the resource manager and its builtin loaders.

	`loader_threads`: Amount of worker threads each builtin loader
		may use.
	`read_chunk_size`: Size of the chunks files are read in, in bytes.
		Loaders report progress once per chunk.
	`poll_interval`: Time slept between polls while waiting on a load
		to complete, in seconds.
	"""

	SCHEMA = Schema(
		{
			"loader_threads": And(int, _positive_int),
			"read_chunk_size": And(int, _positive_int),
			"poll_interval": And(Use(float), lambda v: v >= 0.0),
		},
		ignore_extra_keys = True,
	)

	def __init__(
		self,
		loader_threads: int,
		read_chunk_size: int,
		poll_interval: float,
	) -> None:
		self.loader_threads = loader_threads
		self.read_chunk_size = read_chunk_size
		self.poll_interval = poll_interval

	@classmethod
	def from_dict(cls, data: t.Dict) -> "LoaderConfig":
		"""
		Creates a config from a dict, probably read out of a json file.
		Missing keys are taken from the default config.

		:raises SchemaError: When the schema library fails validating
		the dict.
		"""
		merged = cls.get_default().to_dict()
		merged.update(data)
		data = cls.SCHEMA.validate(merged)

		return cls(
			data["loader_threads"],
			data["read_chunk_size"],
			data["poll_interval"],
		)

	def to_dict(self) -> t.Dict:
		return {
			"loader_threads": self.loader_threads,
			"read_chunk_size": self.read_chunk_size,
			"poll_interval": self.poll_interval,
		}

	@classmethod
	def get_default(cls) -> "LoaderConfig":
		return cls(
			loader_threads = 4,
			read_chunk_size = 2**16,
			poll_interval = 0.005,
		)

	@classmethod
	def load(cls, path: t.Union[str, Path]) -> "LoaderConfig":
		"""
		Loads a config from the json file at ``path``, or returns the
		default config if it does not exist.
		"""
		path = Path(path)
		if not path.exists():
			logger.info(f"Config file {path} does not exist, using default.")
			return cls.get_default()

		with path.open("r", encoding="utf-8") as f:
			return cls.from_dict(json.load(f))

	@classmethod
	def from_env(cls) -> "LoaderConfig":
		"""
		Builds a config from ``PAC_LOADER_THREADS``,
		``PAC_READ_CHUNK_SIZE`` and ``PAC_POLL_INTERVAL``, after loading
		a ``.env`` file if there is one. Unset variables keep their
		defaults.

		:raises SchemaError: If a variable holds a bad value.
		"""
		load_dotenv()

		data: t.Dict[str, t.Any] = {}
		for key, conv in (
			("loader_threads", int),
			("read_chunk_size", int),
			("poll_interval", float),
		):
			v = os.getenv(ENV_PREFIX + key.upper())
			if v is None or v == "":
				continue
			try:
				data[key] = conv(v)
			except ValueError:
				# Let the schema complain about it
				data[key] = v

		return cls.from_dict(data)
