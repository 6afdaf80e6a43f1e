import sys

from loguru import logger
import pytest

import run


@pytest.fixture(autouse=True)
def restore_logging():
	yield
	logger.remove()
	logger.add(sys.stderr)


def test_cli_loads_files(monkeypatch, tmp_path):
	(tmp_path / "a.json").write_text("[1, 2]", encoding="utf-8")
	(tmp_path / "b.txt").write_text("hi", encoding="utf-8")
	monkeypatch.setattr(
		sys, "argv", ["run.py", "-ll", str(tmp_path / "a.json"), str(tmp_path / "b.txt")]
	)
	assert run.main() == 0


def test_cli_reports_failure(monkeypatch, tmp_path):
	(tmp_path / "a.json").write_text("{broken", encoding="utf-8")
	monkeypatch.setattr(sys, "argv", ["run.py", "-ll", "-t", "json", str(tmp_path / "a.json")])
	assert run.main() == 1
