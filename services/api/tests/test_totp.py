import base64

import pytest

from secure_notes_api.exceptions import QrGenerationFailed
from secure_notes_api.services import totp as totp_module
from secure_notes_api.services.totp import TotpEngine

# 对齐到 30 秒步长边界，便于精确构造前后时间步。
T0 = 30 * 56_666_667
SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"


def test_generate_secret_returns_base32_secret_and_provisioning_uri(totp: TotpEngine):
    enrollment = totp.generate_secret("alice")

    assert len(enrollment.secret_base32) == 32
    base64.b32decode(enrollment.secret_base32)
    assert enrollment.provisioning_uri.startswith("otpauth://totp/SecureNotes:alice?")
    assert f"secret={enrollment.secret_base32}" in enrollment.provisioning_uri
    assert "issuer=SecureNotes" in enrollment.provisioning_uri


def test_generate_secret_is_random(totp: TotpEngine):
    assert totp.generate_secret("alice").secret_base32 != totp.generate_secret("alice").secret_base32


def test_verify_code_accepts_one_step_of_clock_drift(totp: TotpEngine):
    code = totp.code_at(SECRET, T0)

    assert totp.verify_code(SECRET, code, at=T0)
    assert totp.verify_code(SECRET, code, at=T0 + 30)
    assert totp.verify_code(SECRET, code, at=T0 - 30)


def test_verify_code_rejects_codes_outside_the_window(totp: TotpEngine):
    code = totp.code_at(SECRET, T0)

    assert not totp.verify_code(SECRET, code, at=T0 + 90)
    assert not totp.verify_code(SECRET, code, at=T0 - 90)


def test_verify_code_strips_whitespace(totp: TotpEngine):
    code = totp.code_at(SECRET, T0)
    assert totp.verify_code(SECRET, f" {code[:3]} {code[3:]} ", at=T0)


@pytest.mark.parametrize("code", [None, "", "12345", "1234567", "abcdef", "12 34"])
def test_verify_code_rejects_malformed_codes(totp: TotpEngine, code):
    assert totp.verify_code(SECRET, code, at=T0) is False


def test_verify_code_returns_false_for_missing_or_malformed_secret(totp: TotpEngine):
    assert totp.verify_code(None, "123456", at=T0) is False
    assert totp.verify_code("", "123456", at=T0) is False
    assert totp.verify_code("not-base32!!", "123456", at=T0) is False


def test_render_qr_returns_png_data_uri(totp: TotpEngine):
    data_uri = totp.render_qr(totp.provisioning_uri(SECRET, "alice"))

    prefix = "data:image/png;base64,"
    assert data_uri.startswith(prefix)
    assert base64.b64decode(data_uri[len(prefix):]).startswith(b"\x89PNG\r\n\x1a\n")


def test_render_qr_failure_raises_qr_generation_failed(totp: TotpEngine, monkeypatch: pytest.MonkeyPatch):
    def _broken_qr(*_args, **_kwargs):
        raise RuntimeError("renderer unavailable")

    monkeypatch.setattr(totp_module.qrcode, "QRCode", _broken_qr)

    with pytest.raises(QrGenerationFailed) as exc:
        totp.render_qr("otpauth://totp/SecureNotes:alice?secret=" + SECRET)
    assert exc.value.status_code == 500
