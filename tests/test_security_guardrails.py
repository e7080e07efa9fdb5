import logging

from fastapi.testclient import TestClient

from progress_api.api.progress import get_engine
from progress_api.core.logging import (
    SecretRedactionFilter,
    SuppressHealthCheckFilter,
    configure_logging,
    redact_secrets,
)
from progress_api.main import app


def test_redact_secrets_masks_sensitive_values():
    raw = (
        "authorization=Bearer sk_live_abc123 "
        "api_key=my-api-key "
        "secret=whsec_456 password=my-password "
        "url=postgresql+asyncpg://dashboard:hunter2@db:5432/dashboard"
    )
    masked = redact_secrets(raw)
    assert "sk_live_abc123" not in masked
    assert "my-api-key" not in masked
    assert "whsec_456" not in masked
    assert "my-password" not in masked
    assert "hunter2" not in masked
    assert "dashboard:[REDACTED]@db" in masked
    assert masked.count("[REDACTED]") == 5


def test_redaction_filter_rewrites_log_records():
    record = logging.LogRecord(
        name="progress_api.store.identity",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Directory call failed | authorization=Bearer %s",
        args=("sk_test_999",),
        exc_info=None,
    )
    assert SecretRedactionFilter().filter(record) is True
    assert "sk_test_999" not in record.getMessage()
    assert "[REDACTED]" in record.getMessage()


def test_health_check_access_lines_are_suppressed():
    health = logging.LogRecord("uvicorn.access", logging.INFO, __file__, 1, '"GET /health HTTP/1.1" 200', (), None)
    overview = logging.LogRecord(
        "uvicorn.access", logging.INFO, __file__, 1, '"POST /teacher-dashboard/student-progress-overview" 200', (), None
    )
    suppress = SuppressHealthCheckFilter()
    assert suppress.filter(health) is False
    assert suppress.filter(overview) is True


def test_unhandled_error_returns_envelope():
    class _Broken:
        async def build_overview(self, *_args, **_kwargs):
            raise RuntimeError("boom")

    app.dependency_overrides[get_engine] = lambda: _Broken()
    with TestClient(app, raise_server_exceptions=False) as tc:
        response = tc.post("/teacher-dashboard/student-progress-overview", json={"organizationCode": "ORG1"})
    assert response.status_code == 500
    body = response.json()
    assert body.get("success") is False
    assert body.get("error", {}).get("code") == "internal_error"
    assert "boom" not in str(body)


def test_configure_logging_quiets_client_and_sql_loggers():
    configure_logging("DEBUG")
    for name in ("httpx", "httpcore", "sqlalchemy.engine"):
        assert logging.getLogger(name).level == logging.WARNING
    filters = logging.getLogger("uvicorn.access").filters
    assert any(isinstance(f, SuppressHealthCheckFilter) for f in filters)
