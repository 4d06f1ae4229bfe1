"""Account integrity and risk engine.

Detects duplicate accounts, manages bans and appeals, and validates
credentials (password strength, breach exposure, email deliverability).
"""

__version__ = "0.1.0"
