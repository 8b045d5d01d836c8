"""Tests for config - file merging, dotted lookup and the session tunables."""

import json
import logging
import os
from unittest import mock

import config
from data_ops.filters import FilterRangeCache
from rendering.overlays import OverlayBuilder
from workspace.history import HistoryState
from workspace.session import GraphSession


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadConfig:
    def test_home_config_overrides_local(self, tmp_path):
        local = _write(tmp_path / "local.json", {"history": {"capacity": 10}, "console_format": "full"})
        home = _write(tmp_path / "home.json", {"history": {"capacity": 40}})
        with mock.patch.object(config, "_LOCAL_CONFIG_PATH", local), \
                mock.patch.object(config, "CONFIG_PATH", home):
            merged = config._load_config()
        assert merged["history"] == {"capacity": 40}
        assert merged["console_format"] == "full"

    def test_missing_files(self, tmp_path):
        with mock.patch.object(config, "_LOCAL_CONFIG_PATH", tmp_path / "nope.json"), \
                mock.patch.object(config, "CONFIG_PATH", tmp_path / "also-nope.json"):
            assert config._load_config() == {}

    def test_unreadable_file_is_skipped_with_warning(self, tmp_path, caplog):
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        home = _write(tmp_path / "home.json", {"overlays": {"grid_size": 12}})
        logging.getLogger("graphdeck").propagate = True
        with mock.patch.object(config, "_LOCAL_CONFIG_PATH", broken), \
                mock.patch.object(config, "CONFIG_PATH", home), \
                caplog.at_level(logging.WARNING, logger="graphdeck"):
            merged = config._load_config()
        assert merged == {"overlays": {"grid_size": 12}}
        assert "Ignoring unreadable config" in caplog.text


class TestGet:
    def test_dotted_key(self):
        with mock.patch.object(config, "_user_config", {"render": {"quiet_period_ms": 50}}):
            assert config.get("render.quiet_period_ms", 300) == 50

    def test_missing_key_returns_default(self):
        with mock.patch.object(config, "_user_config", {}):
            assert config.get("filters.slider_steps", 200) == 200

    def test_non_dict_intermediate_returns_default(self):
        with mock.patch.object(config, "_user_config", {"overlays": 5}):
            assert config.get("overlays.grid_size", 30) == 30

    def test_explicit_null_returns_default(self):
        with mock.patch.object(config, "_user_config", {"history": {"capacity": None}}):
            assert config.get("history.capacity", 25) == 25


class TestTunables:
    def test_shipped_defaults(self):
        with mock.patch.object(config, "_user_config", {}):
            assert config.get("history.capacity", 25) == config.HISTORY_CAPACITY == 25
        assert config.HISTORY_QUIET_PERIOD_MS == 300
        assert config.RENDER_QUIET_PERIOD_MS == 300
        assert config.SLIDER_STEPS == 200
        assert config.LINE_SAMPLES == 101
        assert config.GRID_SIZE == 30

    def test_components_read_tunables(self):
        with mock.patch.multiple(config, HISTORY_CAPACITY=7, SLIDER_STEPS=50, GRID_SIZE=4, LINE_SAMPLES=9):
            assert HistoryState().capacity == 7
            assert HistoryState().past.maxlen == 7
            assert FilterRangeCache().steps == 50
            builder = OverlayBuilder()
            assert (builder.grid_size, builder.line_samples) == (4, 9)
            assert GraphSession().history_capacity == 7


class TestDataDir:
    def setup_method(self):
        config._reset_data_dir()

    def teardown_method(self):
        config._reset_data_dir()

    def test_env_var_wins_and_is_cached(self, tmp_path):
        with mock.patch.dict(os.environ, {"GRAPHDECK_DIR": str(tmp_path / "env")}):
            with mock.patch("config.get", side_effect=lambda k, d=None: str(tmp_path / "cfg") if k == "data_dir" else d):
                first = config.get_data_dir()
        assert first == (tmp_path / "env").resolve()
        assert config.get_data_dir() == first
