import json
from datetime import date
from typing import Any, List

import pytest
from deskbook.utils import audit_log
from deskbook.utils.request_id import set_request_id


def test_emit_audit_log_outputs_json(monkeypatch: pytest.MonkeyPatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    set_request_id("req-123")
    audit_log.emit_audit_log(
        action="booking.created",
        initiator="slack",
        employee_id="U1",
        booking_id=9,
        booking_date=date(2026, 10, 20),
        area="ncl_monument",
        parking=False,
    )
    set_request_id(None)
    assert len(messages) == 1
    payload = json.loads(messages[0])
    assert payload["action"] == "booking.created"
    assert payload["initiator"] == "slack"
    assert payload["request_id"] == "req-123"
    assert payload["date"] == "2026-10-20"
    assert payload["parking"] is False
    assert "reason" not in payload
    assert "timestamp" in payload


def test_emit_audit_log_raises_on_logger_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    class DummyLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    with pytest.raises(RuntimeError):
        audit_log.emit_audit_log(
            action="booking.rejected",
            initiator="user",
            employee_id="U1",
            reason="area_full",
        )


def test_router_audit_helper_swallows_logging_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    from deskbook.routers import common

    def fail(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    monkeypatch.setattr(common, "emit_audit_log", fail)
    common.audit(action="booking.cancelled", initiator="admin", employee_id="U1")
