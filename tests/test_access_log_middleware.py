from __future__ import annotations

import logging

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from compliance_pipeline.middleware.access_log import AccessLogMiddleware

LOGGER_NAME = "compliance_pipeline.middleware.access_log"


async def _ok(request: Request) -> JSONResponse:
    request.state.user_id = "user-42"
    return JSONResponse({"ok": True})


async def _boom(request: Request) -> JSONResponse:
    raise RuntimeError("upstream failed password=hunter2")


def _client() -> TestClient:
    app = Starlette(
        routes=[
            Route("/ok", endpoint=_ok, methods=["GET"]),
            Route("/boom", endpoint=_boom, methods=["GET"]),
            Route("/health", endpoint=_ok, methods=["GET"]),
        ]
    )
    app.add_middleware(AccessLogMiddleware)
    return TestClient(app, raise_server_exceptions=False)


def test_logs_start_and_end_with_user(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
        response = _client().get(
            "/ok?action=get_consent_status", headers={"X-Forwarded-For": "1.2.3.4"}
        )

    assert response.status_code == 200
    start, end = [r.getMessage() for r in caplog.records if r.name == LOGGER_NAME]
    assert start.startswith("REQUEST_START")
    assert "action=get_consent_status" in start
    assert "client_ip=1.2.3.4" in start
    assert end.startswith("REQUEST_END")
    assert "user_id=user-42" in end
    assert "status=200" in end


def test_request_id_header_is_sanitized(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
        _client().get("/ok", headers={"X-Request-ID": "abc\tdef"})

    assert all("request_id=abc_def" in r.getMessage() for r in caplog.records if r.name == LOGGER_NAME)


def test_errors_are_logged_with_masked_message(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
        response = _client().get("/boom")

    assert response.status_code == 500
    [end] = [r for r in caplog.records if r.name == LOGGER_NAME and r.levelno == logging.ERROR]
    message = end.getMessage()
    assert "user_id=anonymous" in message
    assert "hunter2" not in message
    assert "***MASKED***" in message


def test_health_is_not_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
        _client().get("/health")

    assert [r for r in caplog.records if r.name == LOGGER_NAME] == []
