"""Account integrity and risk checks.

Provides:
- Password strength scoring and breach lookup
- Email validation (syntax, disposable domains, typos, MX records)
- Device fingerprinting and login recording
- Multi-account correlation
- Ban lifecycle with appeals
- Brute-force and login-anomaly detection
- Security event log
"""

from integrity.security.breach import BreachCheckResult, check_password_breach
from integrity.security.correlation import (
    MultiAccountCorrelator,
    get_all_multi_account_links,
    get_multi_account_links,
    update_multi_account_status,
)
from integrity.security.email_validator import validate_email
from integrity.security.events import SecurityEventLog
from integrity.security.login_recorder import (
    CorrelationWorker,
    LoginData,
    LoginRecorder,
)
from integrity.security.monitoring import LoginMonitor
from integrity.security.password_policy import validate_password
from integrity.security.suspension import BanManager, parse_ban_duration

__all__ = [
    "BanManager",
    "BreachCheckResult",
    "CorrelationWorker",
    "LoginData",
    "LoginRecorder",
    "LoginMonitor",
    "MultiAccountCorrelator",
    "SecurityEventLog",
    "check_password_breach",
    "get_all_multi_account_links",
    "get_multi_account_links",
    "parse_ban_duration",
    "update_multi_account_status",
    "validate_email",
    "validate_password",
]
