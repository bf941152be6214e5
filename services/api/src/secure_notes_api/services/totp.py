"""基于时间的一次性口令（TOTP，RFC 6238）引擎。

职责:
1. 生成绑定用密钥与 otpauth 配置地址。
2. 将配置地址渲染为二维码 data URI。
3. 以 ±valid_window 个时间步的容错校验用户提交的验证码。
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone

import pyotp
import qrcode

from secure_notes_api.exceptions import QrGenerationFailed

logger = logging.getLogger(__name__)

_CODE_PATTERN = re.compile(r"^\d+$")


@dataclass(frozen=True)
class TotpEnrollment:
    """一次绑定所需的密钥与配置地址。"""

    secret_base32: str
    provisioning_uri: str


class TotpEngine:
    """TOTP 密钥生成、二维码渲染与验证码校验。"""

    def __init__(self, issuer: str, *, interval: int = 30, digits: int = 6, valid_window: int = 1) -> None:
        self.issuer = issuer
        self.interval = interval
        self.digits = digits
        self.valid_window = valid_window

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=self.digits, interval=self.interval, issuer=self.issuer)

    def generate_secret(self, label: str) -> TotpEnrollment:
        """生成新密钥（32 位 base32，160 bit 熵）及其配置地址。"""
        secret = pyotp.random_base32()
        return TotpEnrollment(secret_base32=secret, provisioning_uri=self.provisioning_uri(secret, label))

    def provisioning_uri(self, secret: str, label: str) -> str:
        """按需生成 otpauth://totp/... 地址，不做持久化。"""
        return self._totp(secret).provisioning_uri(name=label, issuer_name=self.issuer)

    def render_qr(self, uri: str) -> str:
        """将配置地址渲染为 PNG 二维码 data URI。"""
        try:
            qr = qrcode.QRCode(version=None, box_size=10, border=4)
            qr.add_data(uri)
            qr.make(fit=True)
            img = qr.make_image(fill_color="black", back_color="white")
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
        except Exception as exc:
            raise QrGenerationFailed() from exc
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    def code_at(self, secret: str, at: datetime | int) -> str:
        """返回指定时刻的验证码。"""
        return self._totp(secret).at(at)

    def verify_code(self, secret: str | None, code: str | None, at: datetime | int | None = None) -> bool:
        """校验验证码，允许前后各 valid_window 个时间步的时钟偏差。

        空值、非数字、位数不符或密钥损坏一律返回 False。
        """
        if not secret or not isinstance(code, str):
            return False
        candidate = code.strip().replace(" ", "")
        if len(candidate) != self.digits or not _CODE_PATTERN.match(candidate):
            return False
        for_time = at if at is not None else datetime.now(timezone.utc)
        try:
            return self._totp(secret).verify(candidate, for_time=for_time, valid_window=self.valid_window)
        except (binascii.Error, ValueError, TypeError):
            logger.warning("totp verification skipped: stored secret is malformed")
            return False
