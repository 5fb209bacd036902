"""中间件测试 -- trace_id 提取、日志配置"""

import logging

import pytest

from bizsignal.gateway.middleware.logging_config import setup_logging
from bizsignal.gateway.middleware.trace_mw import extract_trace_id

EVENT_ID = "01JABCDEFGHJKMNPQRSTVWXYZ0"


class TestTraceId:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            (f"/api/events/{EVENT_ID}", f"trace-event-{EVENT_ID}"),
            (f"/api/events/{EVENT_ID}/retrigger", f"trace-event-{EVENT_ID}"),
            (f"/api/tasks/{EVENT_ID}/checklist/1", f"trace-task-{EVENT_ID}"),
            ("/api/events/trigger", None),
            ("/api/events", None),
            ("/health", None),
        ],
    )
    def test_extract(self, path, expected):
        assert extract_trace_id(path) == expected


class TestLoggingConfig:
    def test_level_from_env(self, monkeypatch):
        monkeypatch.setenv("BIZSIGNAL_LOG_FORMAT", "json")
        monkeypatch.setenv("BIZSIGNAL_LOG_LEVEL", "warning")
        setup_logging()
        assert logging.getLogger().level == logging.WARNING

        monkeypatch.delenv("BIZSIGNAL_LOG_LEVEL")
        setup_logging()
        assert logging.getLogger().level == logging.INFO
