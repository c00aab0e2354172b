import json

import pytest

from geoaudit import cli
from geoaudit.schemas.audit import AuditReport
from geoaudit.services import audit as audit_service


@pytest.fixture(autouse=True)
def _keep_test_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda json_logs=False: None)


@pytest.fixture
def offline_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_run_audit(url: str, probes=None) -> AuditReport:
        return cli.sample_report(url)

    monkeypatch.setattr(audit_service, "run_audit", fake_run_audit)


def test_preview_report_prints_subject_and_text(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["preview-report", "example.com"])
    out = capsys.readouterr().out

    assert out.startswith("Subject: 🟡 Wynik: 60% - 3 problemów")
    assert "Wyniki dla example.com" in out


def test_preview_report_html() -> None:
    rendered = cli.preview_report("example.com", html=True)
    assert "score-circle" in rendered


def test_audit_prints_response_json(offline_audit: None, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["audit", "example.com"])
    payload = json.loads(capsys.readouterr().out)

    assert payload["score"] == 60
    assert payload["pageSpeed"] == 48
    assert payload["schemaMarkup"] is False


def test_audit_send_requires_email(offline_audit: None) -> None:
    with pytest.raises(SystemExit):
        cli.main(["audit", "example.com", "--send"])


def test_audit_send_waits_for_delivery(
    offline_audit: None, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    sent: list[str] = []

    async def fake_send(to_email: str, url: str, report: AuditReport) -> str:
        sent.append(to_email)
        return "msg-9"

    monkeypatch.setattr(cli, "send_audit_report", fake_send)
    cli.main(["audit", "example.com", "--email", "owner@example.com", "--send"])

    assert sent == ["owner@example.com"]
    assert "o***@example.com (msg-9)" in capsys.readouterr().err


def test_audit_send_without_resend_key_exits(offline_audit: None) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["audit", "example.com", "--email", "owner@example.com", "--send"])
    assert "RESEND_API_KEY" in str(exc.value)


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main([])
    assert "usage:" in capsys.readouterr().out

