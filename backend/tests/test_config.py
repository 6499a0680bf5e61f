import json
import logging

import pytest

from config import Config
from tm_api.parsers import PageParser, load_parser
from utils.logger import JSONFormatter, TextFormatter

from conftest import FakeParser, make_config


def test_defaults_validate():
    config = Config(page_parser="  ")

    assert config.initial_concurrency == 20
    assert config.min_payload_bytes == 500
    assert config.page_parser is None


@pytest.mark.parametrize("overrides, message", [
    ({"min_concurrency": 0}, "MIN_CONCURRENCY"),
    ({"initial_concurrency": 1, "min_concurrency": 2}, "INITIAL_CONCURRENCY"),
    ({"failure_rate_threshold": 1.5}, "FAILURE_RATE_THRESHOLD"),
    ({"zero_stats_max_ratio": 0}, "ZERO_STATS_MAX_RATIO"),
    ({"max_delay": 0.5, "initial_delay": 1.0, "min_delay": 0.25}, "MAX_DELAY"),
])
def test_invalid_settings_are_rejected(overrides, message):
    with pytest.raises(ValueError, match=message):
        make_config(**overrides)


# Module-level parser objects for load_parser
fake_parser_instance = FakeParser()
not_a_parser = object()


def test_load_parser_instantiates_classes_and_accepts_instances():
    assert isinstance(load_parser("conftest:FakeParser"), FakeParser)
    assert load_parser("test_config:fake_parser_instance") is fake_parser_instance
    assert isinstance(fake_parser_instance, PageParser)


@pytest.mark.parametrize("target", ["conftest", "conftest:", "test_config:not_a_parser"])
def test_load_parser_rejects_bad_targets(target):
    with pytest.raises(ValueError):
        load_parser(target)


def _record(**extra):
    record = logging.LogRecord("refresh", logging.INFO, __file__, 1, "Batch complete", (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    line = JSONFormatter().format(_record(batch=3, failed=1))

    data = json.loads(line)
    assert data["message"] == "Batch complete"
    assert data["level"] == "INFO"
    assert (data["batch"], data["failed"]) == (3, 1)


def test_text_formatter_appends_extra_fields():
    line = TextFormatter().format(_record(phase="backoff"))

    assert "Batch complete" in line
    assert line.endswith("[phase=backoff]")
