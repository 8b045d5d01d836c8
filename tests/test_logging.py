"""
Tests for workspace.logging - handler setup, tags and error logging.
"""

import logging
import os
from unittest import mock

import config
from workspace import logging as glog


class TestSetupLogging:
    def setup_method(self):
        config._reset_data_dir()

    def teardown_method(self):
        logging.getLogger(glog.LOGGER_NAME).handlers.clear()
        config._reset_data_dir()

    def test_log_file_under_data_dir(self, tmp_path):
        with mock.patch.dict(os.environ, {"GRAPHDECK_DIR": str(tmp_path)}):
            logger = glog.setup_logging()
            logger.info("hello")
            path = glog.get_current_log_path()
        assert path.parent == tmp_path.resolve() / "logs"
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in path.read_text(encoding="utf-8")

    def test_console_level(self, tmp_path):
        with mock.patch.dict(os.environ, {"GRAPHDECK_DIR": str(tmp_path)}):
            quiet = glog.setup_logging(verbose=False, log_to_file=False)
        assert [h.level for h in quiet.handlers] == [logging.WARNING]
        loud = glog.setup_logging(verbose=True, log_to_file=False)
        assert [h.level for h in loud.handlers] == [logging.DEBUG]

    def test_clean_console_format(self):
        with mock.patch("config.get", side_effect=lambda k, d=None: "clean" if k == "console_format" else d):
            logger = glog.setup_logging(log_to_file=False)
        assert logger.handlers == []


class TestHelpers:
    def test_tagged(self):
        assert glog.tagged("notice") == {"log_tag": "notice"}

    def test_log_error_includes_context(self, caplog):
        logger = logging.getLogger(glog.LOGGER_NAME)
        logger.propagate = True
        try:
            raise ValueError("bad value")
        except ValueError as e:
            with caplog.at_level(logging.ERROR, logger=glog.LOGGER_NAME):
                glog.log_error("Render failed", exc=e, context={"graph": 3})
        text = caplog.records[-1].getMessage()
        assert "Render failed" in text
        assert "graph: 3" in text
        assert "Exception type: ValueError" in text
        assert caplog.records[-1].log_tag == "error"

    def test_session_id_injected(self):
        glog.set_session_id("abc")
        record = logging.LogRecord("graphdeck", logging.INFO, __file__, 1, "m", None, None)
        glog._session_filter.filter(record)
        assert record.session_id == "abc"
        glog.set_session_id("")
