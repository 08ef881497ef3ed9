"""
Cash-Up Engine - Config / Metrics Tests
=======================================
"""

from core.config import Settings, SettingsCache
from core.errors import HeaderNotFound, InvalidStateTransition, SubmissionNotFound, ValidationError
from observability.metrics import MetricsRegistry


class TestSettings:
    def test_defaults(self, monkeypatch):
        for key in ("CASHUP_CUTOFF_HOUR", "CASHUP_GRACE_MINUTES", "BALANCE_TOLERANCE", "DATABASE_URL"):
            monkeypatch.delenv(key, raising=False)
        s = Settings()
        assert s.CASHUP_CUTOFF_HOUR == 20
        assert s.CASHUP_GRACE_MINUTES == 30
        assert s.BALANCE_TOLERANCE == 0.01
        assert s.DATABASE_URL == "memory://"

    def test_env_overrides_and_bad_values(self, monkeypatch):
        monkeypatch.setenv("CASHUP_GRACE_MINUTES", "45")
        monkeypatch.setenv("BALANCE_TOLERANCE", "not-a-number")
        monkeypatch.setenv("AUTH_ENABLED", "off")
        s = Settings()
        assert s.CASHUP_GRACE_MINUTES == 45
        assert s.BALANCE_TOLERANCE == 0.01
        assert s.AUTH_ENABLED is False

    def test_validate_soft_returns_warnings(self):
        s = Settings(AUTH_ENABLED=True, AUTH_JWT_SECRET="", STORAGE_BACKEND="ftp", BALANCE_TOLERANCE=-1)
        warnings = s.validate_soft()
        assert len(warnings) == 3

    def test_unknown_timezone_is_reported(self):
        warnings = Settings(AUTH_ENABLED=False, CASHUP_TIMEZONE="Mars/Base").validate_soft()
        assert warnings == ["CASHUP_TIMEZONE is not a known IANA zone: 'Mars/Base'"]

    def test_known_timezone_is_accepted(self):
        assert Settings(AUTH_ENABLED=False, CASHUP_TIMEZONE="UTC").validate_soft() == []

    def test_max_upload_bytes(self):
        assert Settings(MAX_UPLOAD_MB=2).max_upload_bytes == 2 * 1024 * 1024


class TestSettingsCache:
    def test_reloads_after_ttl(self):
        loads = []
        now = [0.0]

        def loader():
            loads.append(1)
            return Settings(ENV=f"load-{len(loads)}")

        cache = SettingsCache(ttl_seconds=10, loader=loader, clock=lambda: now[0])
        assert cache.get().ENV == "load-1"
        now[0] = 9.0
        assert cache.get().ENV == "load-1"
        now[0] = 10.0
        assert cache.get().ENV == "load-2"

    def test_invalidate(self):
        loads = []
        cache = SettingsCache(ttl_seconds=3600, loader=lambda: loads.append(1) or Settings())
        cache.get()
        cache.invalidate()
        cache.get()
        assert len(loads) == 2

    def test_ttl_from_settings(self):
        now = [0.0]
        loads = []

        def loader():
            loads.append(1)
            return Settings(SETTINGS_TTL_SECONDS=5)

        cache = SettingsCache(loader=loader, clock=lambda: now[0])
        cache.get()
        now[0] = 4.0
        cache.get()
        now[0] = 6.0
        cache.get()
        assert len(loads) == 2


class TestErrors:
    def test_to_dict_flattens_details(self):
        payload = HeaderNotFound(["Amount"], scanned_rows=50).to_dict()
        assert payload == {
            "success": False,
            "error": "Could not find the TransactionType/Amount header row in the spreadsheet.",
            "code": "HEADER_NOT_FOUND",
            "missingHeaders": ["Amount"],
            "scannedRows": 50,
        }

    def test_status_codes(self):
        assert HeaderNotFound([], 0).status_code == 400
        assert ValidationError("x").status_code == 422
        assert SubmissionNotFound("s").status_code == 404
        assert InvalidStateTransition("submit for review", "pending").status_code == 409

    def test_transition_message_names_status(self):
        assert InvalidStateTransition("submit for review", "pending").message == (
            "Cannot submit for review: current status is pending"
        )


class TestMetrics:
    def test_counters_by_label(self):
        metrics = MetricsRegistry()
        metrics.increment("uploads", labels={"mode": "linked"})
        metrics.increment("uploads", labels={"mode": "linked"})
        metrics.increment("uploads", labels={"mode": "standalone"})

        assert metrics.get("uploads", {"mode": "linked"}) == 2
        assert metrics.get("uploads") == 0
        assert metrics.total("uploads") == 3
        assert {"labels": {"mode": "standalone"}, "value": 1.0} in metrics.snapshot()["uploads"]

        metrics.reset()
        assert metrics.snapshot() == {}


class TestLogging:
    def test_request_id_is_injected(self):
        import logging

        from core.logging import RequestIdFilter, reset_request_id, set_request_id

        record = logging.LogRecord("cashup.test", logging.INFO, __file__, 1, "hello", None, None)
        token = set_request_id("req-42")
        try:
            RequestIdFilter().filter(record)
        finally:
            reset_request_id(token)
        assert record.request_id == "req-42"

    def test_json_formatter_keeps_workflow_fields(self):
        import json
        import logging

        from core.logging import JSONFormatter

        record = logging.LogRecord("cashup.workflow", logging.INFO, __file__, 1, "submitted", None, None)
        record.submission_id = "s-1"
        payload = json.loads(JSONFormatter().format(record))
        assert payload["message"] == "submitted"
        assert payload["submission_id"] == "s-1"
        assert payload["request_id"] == "-"

    def test_get_logger_prefixes_name(self):
        from core.logging import get_logger

        assert get_logger("workbook").name == "cashup.workbook"
        assert get_logger("cashup.api").name == "cashup.api"
