"""Email validation for signup and email changes.

Multi-layer pipeline:
1. Syntax (RFC 5322 approximation plus length bounds)
2. Normalization (lowercase, gmail dot/plus folding) for deduplication
3. Disposable domain detection (blocks)
4. Role account detection (warns)
5. Domain typo detection (warns, suggests a fix)
6. MX record lookup with a bounded timeout (blocks)

A failed syntax check short-circuits the remaining steps.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field

import dns.asyncresolver
import dns.exception

from integrity.config import get_settings
from integrity.security.blocklists import (
    DISPOSABLE_DOMAINS,
    DOMAIN_TYPOS,
    GMAIL_DOMAINS,
    ROLE_PREFIXES,
)

logger = logging.getLogger("integrity.email")

EMAIL_REGEX = re.compile(
    r"""(?:[a-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[a-z0-9!#$%&'*+/=?^_`{|}~-]+)*"""
    r'''|"(?:[\x01-\x08\x0b\x0c\x0e-\x1f\x21\x23-\x5b\x5d-\x7f]'''
    r'''|\\[\x01-\x09\x0b\x0c\x0e-\x7f])*")'''
    r"@(?:(?:[a-z0-9](?:[a-z0-9-]*[a-z0-9])?\.)+[a-z0-9](?:[a-z0-9-]*[a-z0-9])?"
    r"|\[(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
    r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?|[a-z0-9-]*[a-z0-9]:"
    r"(?:[\x01-\x08\x0b\x0c\x0e-\x1f\x21-\x5a\x53-\x7f]"
    r"|\\[\x01-\x09\x0b\x0c\x0e-\x7f])+)\])",
    re.IGNORECASE,
)

MIN_EMAIL_LENGTH = 5
MAX_EMAIL_LENGTH = 254
MAX_LOCAL_LENGTH = 64
MAX_DOMAIN_LENGTH = 253

# Risk weights for each failed check
RISK_WEIGHTS = {
    "syntax": 100,
    "domain": 50,
    "mx": 30,
    "disposable": 80,
    "role_account": 20,
    "typo": 10,
}

MxResolver = Callable[[str], Awaitable[list[str]]]


@dataclass(frozen=True)
class EmailRules:
    """Read-only lookup tables used by the email checks."""

    disposable_domains: frozenset[str] = DISPOSABLE_DOMAINS
    role_prefixes: frozenset[str] = ROLE_PREFIXES
    domain_typos: Mapping[str, str] = field(default_factory=lambda: DOMAIN_TYPOS)
    gmail_domains: frozenset[str] = GMAIL_DOMAINS


DEFAULT_EMAIL_RULES = EmailRules()


@dataclass
class EmailValidationOptions:
    """Which checks to run."""

    check_mx: bool = True
    check_disposable: bool = True
    check_role_account: bool = True
    check_typo: bool = True
    timeout: float | None = None  # MX timeout in seconds; None = configured


@dataclass
class EmailChecks:
    """Per-check verdicts; True means the check passed."""

    syntax: bool = True
    domain: bool = True
    mx: bool = True
    disposable: bool = True
    role_account: bool = True
    typo: bool = True


@dataclass
class EmailValidationResult:
    """Outcome of ``validate_email``."""

    valid: bool
    email: str
    normalized: str
    checks: EmailChecks
    risk: str  # low, medium, high
    risk_score: int
    suggestion: str | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# Individual Checks
# =============================================================================


def get_domain(email: str) -> str:
    """Extract domain from email address."""
    return email.lower().split("@")[-1]


def validate_syntax(email: str) -> bool:
    """Check shape and length bounds of an email address."""
    if not email or not isinstance(email, str):
        return False
    if len(email) < MIN_EMAIL_LENGTH or len(email) > MAX_EMAIL_LENGTH:
        return False

    local_part, _, domain = email.partition("@")
    if not local_part or not domain:
        return False
    if len(local_part) > MAX_LOCAL_LENGTH or len(domain) > MAX_DOMAIN_LENGTH:
        return False
    return EMAIL_REGEX.fullmatch(email) is not None


def normalize_email(email: str, rules: EmailRules = DEFAULT_EMAIL_RULES) -> str:
    """Canonical form used to spot duplicate signups.

    Lowercases, drops "+tag" suffixes, and for gmail also drops dots in the
    local part and folds googlemail.com into gmail.com.
    """
    trimmed = email.strip().lower()
    local_part, _, domain = trimmed.partition("@")
    if not local_part or not domain:
        return trimmed

    if domain in rules.gmail_domains:
        local_part = local_part.replace(".", "").split("+")[0]
        domain = "gmail.com"
    elif "+" in local_part:
        local_part = local_part.split("+")[0]

    return f"{local_part}@{domain}"


def is_disposable_domain(
    domain: str, rules: EmailRules = DEFAULT_EMAIL_RULES
) -> bool:
    """Check if a domain belongs to a throwaway mail service."""
    return domain.lower() in rules.disposable_domains


def is_disposable_email(
    email: str, rules: EmailRules = DEFAULT_EMAIL_RULES
) -> bool:
    """Check if email uses a disposable domain.

    Args:
        email: Email address to check.

    Returns:
        True if the domain is known to be disposable.
    """
    if "@" not in email:
        return False
    return is_disposable_domain(get_domain(email), rules)


def is_role_account(
    local_part: str, rules: EmailRules = DEFAULT_EMAIL_RULES
) -> bool:
    """Check if a local part names a role ("admin", "noreply") not a person."""
    return local_part.lower().split("+")[0] in rules.role_prefixes


def suggest_domain(
    domain: str, rules: EmailRules = DEFAULT_EMAIL_RULES
) -> str | None:
    """Return the intended domain for a known typo, if any."""
    return rules.domain_typos.get(domain.lower())


def get_email_suggestion(
    email: str, rules: EmailRules = DEFAULT_EMAIL_RULES
) -> str | None:
    """Suggest a corrected address for a mistyped domain."""
    local_part, _, domain = email.partition("@")
    if not domain:
        return None
    corrected = suggest_domain(domain, rules)
    if corrected:
        return f"{local_part}@{corrected}"
    return None


def is_valid_email_format(email: str) -> bool:
    """Syntax-only check."""
    return validate_syntax(email)


async def resolve_mx_records(domain: str) -> list[str]:
    """Resolve MX hosts for a domain with dnspython."""
    answer = await dns.asyncresolver.resolve(
        domain, "MX", lifetime=get_settings().mx_timeout_seconds
    )
    return [str(record.exchange) for record in answer]


async def check_mx_records(
    domain: str,
    timeout: float,
    resolver: MxResolver = resolve_mx_records,
) -> bool:
    """Check that a domain has at least one MX record.

    The lookup races a timer; a timeout or any resolver error counts as
    "cannot receive mail".
    """
    try:
        records = await asyncio.wait_for(resolver(domain), timeout=timeout)
    except asyncio.TimeoutError:
        logger.info("MX lookup for %s timed out after %ss", domain, timeout)
        return False
    except dns.exception.DNSException as e:
        logger.info("MX lookup for %s failed: %s", domain, e)
        return False
    except Exception:
        logger.exception("MX lookup for %s raised unexpectedly", domain)
        return False
    return bool(records)


def calculate_risk_score(checks: EmailChecks) -> int:
    """Sum the weights of failed checks, capped at 100."""
    score = sum(
        weight for name, weight in RISK_WEIGHTS.items() if not getattr(checks, name)
    )
    return min(score, 100)


def get_risk_level(score: int) -> str:
    """Bucket a risk score into low / medium / high."""
    if score >= 50:
        return "high"
    if score >= 20:
        return "medium"
    return "low"


# =============================================================================
# Pipeline
# =============================================================================


async def validate_email(
    email: str,
    options: EmailValidationOptions | None = None,
    rules: EmailRules = DEFAULT_EMAIL_RULES,
    mx_resolver: MxResolver = resolve_mx_records,
) -> EmailValidationResult:
    """Validate an email address for signup.

    Args:
        email: Address as typed by the user.
        options: Which checks to run.
        rules: Lookup tables.
        mx_resolver: Coroutine returning MX hosts for a domain.

    Returns:
        EmailValidationResult. Role accounts and typos only warn; syntax,
        disposable domains and missing MX records make the address invalid.
    """
    opts = options or EmailValidationOptions()
    timeout = opts.timeout
    if timeout is None:
        timeout = get_settings().mx_timeout_seconds

    errors: list[str] = []
    warnings: list[str] = []
    checks = EmailChecks()
    suggestion: str | None = None

    normalized = normalize_email(email, rules)
    local_part, _, domain = normalized.partition("@")

    if not validate_syntax(email):
        checks.syntax = False
        errors.append("Invalid email format")

    if checks.syntax and domain:
        if opts.check_disposable and is_disposable_domain(domain, rules):
            checks.disposable = False
            errors.append("Disposable email addresses are not allowed")

        if (
            opts.check_role_account
            and local_part
            and is_role_account(local_part, rules)
        ):
            checks.role_account = False
            warnings.append("Role-based email addresses may have delivery issues")

        if opts.check_typo:
            corrected = suggest_domain(domain, rules)
            if corrected:
                checks.typo = False
                suggestion = f"{local_part}@{corrected}"
                warnings.append(f"Did you mean {suggestion}?")

        if opts.check_mx:
            has_mx = await check_mx_records(domain, timeout, mx_resolver)
            if not has_mx:
                checks.mx = False
                checks.domain = False
                errors.append("Domain cannot receive emails (no MX records)")

    risk_score = calculate_risk_score(checks)

    return EmailValidationResult(
        valid=not errors,
        email=email,
        normalized=normalized,
        checks=checks,
        risk=get_risk_level(risk_score),
        risk_score=risk_score,
        suggestion=suggestion,
        errors=errors,
        warnings=warnings,
    )
