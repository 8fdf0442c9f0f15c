import json
import logging

import pytest

from pricing_engine.core.config import Settings
from pricing_engine.core.logging import JsonFormatter, RequestIdFilter, request_id_ctx


class TestSettings:
    def test_db_path_derived_from_data_dir(self, tmp_path):
        settings = Settings(data_dir=tmp_path / "data", db_filename="x.sqlite3")
        settings.init_post_load()
        assert settings.db_path == tmp_path / "data" / "x.sqlite3"
        assert (tmp_path / "data").is_dir()

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RATE_DRIFT_BOUND", "0.05")
        monkeypatch.setenv("SIMULATION_SEED", "9")
        settings = Settings(data_dir=tmp_path)
        assert settings.rate_drift_bound == 0.05
        assert settings.simulation_seed == 9

    @pytest.mark.parametrize(
        "field,value",
        [
            ("rate_drift_bound", 0.0),
            ("rate_drift_bound", 1.5),
            ("min_exchange_rate", 0.0),
            ("rate_history_retention", -1),
            ("trend_window", 1),
        ],
    )
    def test_invalid_tunables(self, tmp_path, field, value):
        settings = Settings(data_dir=tmp_path, **{field: value})
        with pytest.raises(ValueError):
            settings.init_post_load()


class TestJsonLogging:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("pricing.test", logging.INFO, __file__, 1, "tick %s", ("ok",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_extra_fields_included(self):
        record = self._record(samples=4, rates={"EUR": 0.93})
        RequestIdFilter().filter(record)
        data = json.loads(JsonFormatter().format(record))
        assert data["message"] == "tick ok"
        assert data["logger"] == "pricing.test"
        assert data["samples"] == 4
        assert data["rates"] == {"EUR": 0.93}
        assert data["request_id"] == "-"

    def test_request_id_from_context(self):
        token = request_id_ctx.set("abc-123")
        try:
            record = self._record()
            RequestIdFilter().filter(record)
            assert json.loads(JsonFormatter().format(record))["request_id"] == "abc-123"
        finally:
            request_id_ctx.reset(token)
