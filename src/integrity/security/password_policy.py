"""Password strength scoring.

Scores a password from 0-100 and reports hard errors (which make it
invalid) separately from warnings and suggestions (which only lower the
score). All checks are pure functions over the tables in ``PasswordRules``.
"""

import math
import re
import secrets
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field

from integrity.security.blocklists import (
    COMMON_PASSWORDS,
    KEYBOARD_PATTERNS,
    LEET_SUBSTITUTIONS,
    SEQUENTIAL_PATTERNS,
)

SPECIAL_CHARS_RE = re.compile(r"""[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?`~]""")
UPPERCASE_RE = re.compile(r"[A-Z]")
LOWERCASE_RE = re.compile(r"[a-z]")
DIGIT_RE = re.compile(r"[0-9]")
NON_ASCII_RE = re.compile(r"[^\x00-\x7F]")
REPEATED_RUN_RE = re.compile(r"(.)\1{2,}")
TRAILING_DIGITS_RE = re.compile(r"\d+$")
TRAILING_SPECIAL_RE = re.compile(r"[!@#$%^&*]+$")

# Share of the password a single character may occupy
MAX_CHAR_SHARE = 0.3


@dataclass(frozen=True)
class PasswordRules:
    """Read-only pattern tables consulted by the password checks."""

    common_passwords: frozenset[str] = COMMON_PASSWORDS
    keyboard_patterns: tuple[str, ...] = KEYBOARD_PATTERNS
    sequential_patterns: tuple[str, ...] = SEQUENTIAL_PATTERNS
    leet_substitutions: Mapping[str, str] = field(
        default_factory=lambda: LEET_SUBSTITUTIONS
    )


DEFAULT_PASSWORD_RULES = PasswordRules()


@dataclass
class UserInfo:
    """Personal details a password must not contain."""

    email: str | None = None
    username: str | None = None
    name: str | None = None


@dataclass
class PasswordOptions:
    """Tunable password policy."""

    min_length: int = 8
    max_length: int = 128
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_special_chars: bool = False
    check_common_passwords: bool = True
    check_keyboard_patterns: bool = True
    check_sequential_chars: bool = True
    check_repeated_chars: bool = True
    min_entropy: int = 40
    user_info: UserInfo | None = None


@dataclass
class PasswordValidationResult:
    """Outcome of ``validate_password``."""

    is_valid: bool
    score: int  # 0-100
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class PasswordStrengthDetails:
    """Raw signals behind a password's score."""

    length: int
    has_uppercase: bool
    has_lowercase: bool
    has_numbers: bool
    has_special_chars: bool
    has_keyboard_pattern: bool
    has_sequential_chars: bool
    has_repeated_chars: bool
    is_common_password: bool
    entropy: int


# =============================================================================
# Individual Checks
# =============================================================================


def get_charset_size(password: str) -> int:
    """Size of the character pool the password draws from (at least 1)."""
    size = 0
    if LOWERCASE_RE.search(password):
        size += 26
    if UPPERCASE_RE.search(password):
        size += 26
    if DIGIT_RE.search(password):
        size += 10
    if SPECIAL_CHARS_RE.search(password):
        size += 32
    if NON_ASCII_RE.search(password):
        size += 100
    return size or 1


def calculate_entropy(password: str) -> int:
    """Estimate entropy in bits as ``floor(length * log2(charset_size))``."""
    return math.floor(len(password) * math.log2(get_charset_size(password)))


def has_keyboard_pattern(
    password: str, rules: PasswordRules = DEFAULT_PASSWORD_RULES
) -> bool:
    """Check for keyboard runs like "qwerty" or "!@#$%", forwards or backwards."""
    lower = password.lower()
    return any(
        pattern in lower or pattern[::-1] in lower
        for pattern in rules.keyboard_patterns
    )


def has_sequential_chars(
    password: str, rules: PasswordRules = DEFAULT_PASSWORD_RULES
) -> bool:
    """Check for alphabet runs or three consecutive code points (abc, 321)."""
    lower = password.lower()
    if any(pattern in lower for pattern in rules.sequential_patterns):
        return True

    codes = [ord(char) for char in password]
    for c1, c2, c3 in zip(codes, codes[1:], codes[2:]):
        if c2 == c1 + 1 and c3 == c2 + 1:
            return True
        if c2 == c1 - 1 and c3 == c2 - 1:
            return True
    return False


def has_repeated_chars(password: str) -> bool:
    """Check for 3+ identical characters in a row or one dominant character."""
    if not password:
        return False
    if REPEATED_RUN_RE.search(password):
        return True

    _, max_count = Counter(password.lower()).most_common(1)[0]
    return max_count / len(password) > MAX_CHAR_SHARE


def decode_leet_speak(
    text: str, rules: PasswordRules = DEFAULT_PASSWORD_RULES
) -> str:
    """Undo common leetspeak substitutions ("p@ssw0rd" -> "password")."""
    return "".join(rules.leet_substitutions.get(char, char) for char in text)


def is_common_password(
    password: str, rules: PasswordRules = DEFAULT_PASSWORD_RULES
) -> bool:
    """Check the password and its normalized forms against the common list.

    Tries the lowercased password as-is, without trailing digits, without
    trailing ``!@#$%^&*`` and with leetspeak decoded.
    """
    lower = password.lower()
    candidates = (
        lower,
        TRAILING_DIGITS_RE.sub("", lower),
        TRAILING_SPECIAL_RE.sub("", lower),
        decode_leet_speak(lower, rules),
    )
    return any(candidate in rules.common_passwords for candidate in candidates)


def contains_user_info(password: str, user_info: UserInfo) -> bool:
    """Check whether the password embeds the user's email, username or name."""
    lower = password.lower()

    if user_info.email:
        local_part = user_info.email.lower().split("@")[0]
        if local_part and local_part in lower:
            return True

    if user_info.username and user_info.username.lower() in lower:
        return True

    if user_info.name:
        name_parts = user_info.name.lower().split()
        if any(len(part) > 2 and part in lower for part in name_parts):
            return True

    return False


def analyze_password_strength(
    password: str, rules: PasswordRules = DEFAULT_PASSWORD_RULES
) -> PasswordStrengthDetails:
    """Collect every strength signal without applying a policy."""
    return PasswordStrengthDetails(
        length=len(password),
        has_uppercase=bool(UPPERCASE_RE.search(password)),
        has_lowercase=bool(LOWERCASE_RE.search(password)),
        has_numbers=bool(DIGIT_RE.search(password)),
        has_special_chars=bool(SPECIAL_CHARS_RE.search(password)),
        has_keyboard_pattern=has_keyboard_pattern(password, rules),
        has_sequential_chars=has_sequential_chars(password, rules),
        has_repeated_chars=has_repeated_chars(password),
        is_common_password=is_common_password(password, rules),
        entropy=calculate_entropy(password),
    )


# =============================================================================
# Policy
# =============================================================================


def validate_password(
    password: str,
    options: PasswordOptions | None = None,
    rules: PasswordRules = DEFAULT_PASSWORD_RULES,
) -> PasswordValidationResult:
    """Validate a password against the policy and score it.

    Args:
        password: The candidate password.
        options: Policy knobs; defaults apply when omitted.
        rules: Pattern tables to check against.

    Returns:
        PasswordValidationResult. ``is_valid`` is true iff there are no
        errors; warnings only lower the score.
    """
    opts = options or PasswordOptions()
    errors: list[str] = []
    warnings: list[str] = []
    suggestions: list[str] = []
    score = 100

    # Length
    if len(password) < opts.min_length:
        errors.append(f"Password must be at least {opts.min_length} characters")
        score -= 30
    if len(password) > opts.max_length:
        errors.append(f"Password must be at most {opts.max_length} characters")
        score -= 10

    # Character classes
    if opts.require_uppercase and not UPPERCASE_RE.search(password):
        errors.append("Password must contain at least one uppercase letter")
        score -= 15
    if opts.require_lowercase and not LOWERCASE_RE.search(password):
        errors.append("Password must contain at least one lowercase letter")
        score -= 15
    if opts.require_numbers and not DIGIT_RE.search(password):
        errors.append("Password must contain at least one number")
        score -= 15
    if opts.require_special_chars and not SPECIAL_CHARS_RE.search(password):
        errors.append("Password must contain at least one special character")
        score -= 15

    if opts.check_common_passwords and is_common_password(password, rules):
        errors.append("This password is too common and easily guessable")
        score -= 40

    if opts.check_keyboard_patterns and has_keyboard_pattern(password, rules):
        warnings.append("Password contains keyboard patterns")
        suggestions.append('Avoid keyboard patterns like "qwerty" or "asdf"')
        score -= 15

    if opts.check_sequential_chars and has_sequential_chars(password, rules):
        warnings.append("Password contains sequential characters")
        suggestions.append('Avoid sequences like "abc" or "123"')
        score -= 10

    if opts.check_repeated_chars and has_repeated_chars(password):
        warnings.append("Password contains too many repeated characters")
        suggestions.append("Avoid repeating the same character multiple times")
        score -= 10

    if opts.user_info and contains_user_info(password, opts.user_info):
        errors.append("Password should not contain your personal information")
        score -= 25

    entropy = calculate_entropy(password)
    if entropy < opts.min_entropy:
        warnings.append("Password could be stronger")
        suggestions.append(
            "Use a mix of different character types for better security"
        )
        score -= 15

    # Bonuses
    if len(password) >= 12:
        score += 5
    if len(password) >= 16:
        score += 5
    if SPECIAL_CHARS_RE.search(password):
        score += 5
    if entropy >= 60:
        score += 5

    return PasswordValidationResult(
        is_valid=not errors,
        score=max(0, min(100, score)),
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
    )


def generate_secure_password(length: int = 16) -> str:
    """Generate a random password with every character class represented."""
    lowercase = "abcdefghijklmnopqrstuvwxyz"
    uppercase = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    numbers = "0123456789"
    special = "!@#$%^&*()_+-="
    pool = lowercase + uppercase + numbers + special

    chars = [
        secrets.choice(lowercase),
        secrets.choice(uppercase),
        secrets.choice(numbers),
        secrets.choice(special),
    ]
    chars.extend(secrets.choice(pool) for _ in range(length - len(chars)))

    # Fisher-Yates with a CSPRNG
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]
    return "".join(chars)
