from __future__ import annotations

import secrets
import string
from uuid import uuid4

SESSION_CODE_ALPHABET = string.ascii_uppercase + string.digits
SESSION_CODE_LENGTH = 6
ORDER_NUMBER_DIGITS = 8
JOIN_TOKEN_BYTES = 24


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def new_session_code() -> str:
    return "".join(secrets.choice(SESSION_CODE_ALPHABET) for _ in range(SESSION_CODE_LENGTH))


def new_join_token() -> str:
    return secrets.token_urlsafe(JOIN_TOKEN_BYTES)


def new_order_number() -> str:
    return f"{secrets.randbelow(10**ORDER_NUMBER_DIGITS):0{ORDER_NUMBER_DIGITS}d}"


def is_session_code(value: str) -> bool:
    return len(value) == SESSION_CODE_LENGTH and all(
        char in SESSION_CODE_ALPHABET for char in value
    )
