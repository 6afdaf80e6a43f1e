import io
import json

from loguru import logger
import pytest
from schema import SchemaError

from asset_cache.config import LoaderConfig
from asset_cache.log import level_for_debug_level, setup_logging


def test_default_round_trip():
	cfg = LoaderConfig.get_default()
	assert LoaderConfig.from_dict(cfg.to_dict()).to_dict() == cfg.to_dict()


def test_partial_dict_keeps_defaults():
	cfg = LoaderConfig.from_dict({"loader_threads": 8})
	assert cfg.loader_threads == 8
	assert cfg.read_chunk_size == LoaderConfig.get_default().read_chunk_size


@pytest.mark.parametrize("data", [
	{"loader_threads": 0},
	{"loader_threads": "many"},
	{"loader_threads": True},
	{"read_chunk_size": False},
	{"read_chunk_size": -1},
	{"poll_interval": -0.5},
])
def test_invalid_values_rejected(data):
	with pytest.raises(SchemaError):
		LoaderConfig.from_dict(data)


def test_load_file(tmp_path):
	path = tmp_path / "config.json"
	path.write_text(json.dumps({"poll_interval": 0.1}), encoding="utf-8")

	assert LoaderConfig.load(path).poll_interval == 0.1
	assert LoaderConfig.load(tmp_path / "missing.json").to_dict() == \
		LoaderConfig.get_default().to_dict()


def test_from_env(monkeypatch, tmp_path):
	monkeypatch.chdir(tmp_path)
	monkeypatch.setenv("PAC_LOADER_THREADS", "2")
	monkeypatch.setenv("PAC_POLL_INTERVAL", "0.25")
	monkeypatch.delenv("PAC_READ_CHUNK_SIZE", raising=False)

	cfg = LoaderConfig.from_env()
	assert cfg.loader_threads == 2
	assert cfg.poll_interval == 0.25
	assert cfg.read_chunk_size == 2**16


def test_from_env_bad_value(monkeypatch, tmp_path):
	monkeypatch.chdir(tmp_path)
	monkeypatch.setenv("PAC_LOADER_THREADS", "lots")
	with pytest.raises(SchemaError):
		LoaderConfig.from_env()


def test_level_for_debug_level():
	assert level_for_debug_level(0) == "INFO"
	assert level_for_debug_level(1) == "DEBUG"
	assert level_for_debug_level(5) == "TRACE"


def test_setup_logging_filters_by_level():
	sink = io.StringIO()
	handler_id = setup_logging(0, sink)
	try:
		logger.debug("hidden")
		logger.info("shown")
	finally:
		logger.remove(handler_id)

	out = sink.getvalue()
	assert "shown" in out
	assert "hidden" not in out
