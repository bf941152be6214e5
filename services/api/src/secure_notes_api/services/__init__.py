"""服务层能力导出集合。"""

from secure_notes_api.services.auth_flow import AccountState, AuthFlow, account_state
from secure_notes_api.services.credential_store import CredentialStore, normalize_username
from secure_notes_api.services.passwords import hash_password, verify_password
from secure_notes_api.services.totp import TotpEngine, TotpEnrollment

__all__ = [
    "AccountState",
    "AuthFlow",
    "account_state",
    "CredentialStore",
    "normalize_username",
    "hash_password",
    "verify_password",
    "TotpEngine",
    "TotpEnrollment",
]
