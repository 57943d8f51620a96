"""
Password hashing and access tokens for the Academy backend.

Tokens are HS256 JWTs whose subject is the user id. The role is carried as
an extra claim for clients; the server always reloads the user.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import secrets
import string

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TEMP_PASSWORD_SYMBOLS = "!@#$%&*"

PASSWORD_RULES = [
    (lambda p: len(p) >= 8, "Password should be at least 8 characters long"),
    (lambda p: any(c.isupper() for c in p), "Password should contain at least one uppercase letter"),
    (lambda p: any(c.islower() for c in p), "Password should contain at least one lowercase letter"),
    (lambda p: any(c.isdigit() for c in p), "Password should contain at least one number"),
]


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    user_id: int,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Encode a bearer token for a user.

    Args:
        user_id: Stored as the string ``sub`` claim
        role: Optional ``role`` claim
        expires_delta: Lifetime, ACCESS_TOKEN_EXPIRE_MINUTES by default

    Returns:
        str: The encoded JWT
    """
    issued_at = datetime.utcnow()
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    claims: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    if role is not None:
        claims["role"] = role

    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Decoded claims of a valid, unexpired token, or None."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def token_user_id(token: str) -> Optional[int]:
    """The user id a token was issued for, or None when the token is unusable."""
    claims = verify_token(token)
    if claims is None:
        return None
    subject = str(claims.get("sub", ""))
    return int(subject) if subject.isdigit() else None


def generate_temp_password(length: int = 14) -> str:
    """
    A random password for staff-created accounts.

    One character from each required class is placed first, so the result
    always passes check_password_strength.
    """
    required = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(TEMP_PASSWORD_SYMBOLS),
    ]
    alphabet = string.ascii_letters + string.digits
    filler = [secrets.choice(alphabet) for _ in range(max(length - len(required), 0))]
    return "".join(required + filler)


def check_password_strength(password: str) -> Dict[str, Any]:
    issues: List[str] = [message for rule, message in PASSWORD_RULES if not rule(password)]

    if not issues:
        strength = "strong"
    elif len(issues) <= 2:
        strength = "medium"
    else:
        strength = "weak"

    return {
        "strength": strength,
        "issues": issues,
        "valid": not issues
    }
