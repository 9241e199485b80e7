"""Tests for loguru sink setup."""

import json
import sys

import pytest
from loguru import logger

from stridesync.config.settings import Settings
from stridesync.core.logger import setup_logger


@pytest.fixture(autouse=True)
def restore_default_sink():
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestSetupLogger:
    def test_file_sink_uses_configured_level_and_bound_athlete(self, tmp_path):
        log_file = tmp_path / "logs" / "stridesync.log"
        config = Settings(LOG_LEVEL="warning", LOG_FILE=str(log_file))

        setup_logger(config=config)
        logger.info("hidden")
        logger.bind(athlete_id="athlete-7").warning("sync skipped")
        logger.warning("no athlete")
        logger.remove()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert "| athlete-7 |" in lines[0]
        assert lines[0].endswith("sync skipped")
        assert "| - |" in lines[1]

    def test_level_argument_overrides_settings(self, tmp_path):
        log_file = tmp_path / "debug.log"

        setup_logger(level="DEBUG", config=Settings(LOG_LEVEL="ERROR", LOG_FILE=str(log_file)))
        logger.debug("details")
        logger.remove()

        assert "details" in log_file.read_text(encoding="utf-8")

    def test_serialized_file_sink(self, tmp_path):
        log_file = tmp_path / "stridesync.jsonl"

        setup_logger(config=Settings(LOG_FILE=str(log_file), LOG_SERIALIZE=True))
        logger.bind(athlete_id="athlete-7").info("merged")
        logger.remove()

        records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        merged = next(r for r in records if r["record"]["message"] == "merged")
        assert merged["record"]["extra"]["athlete_id"] == "athlete-7"
