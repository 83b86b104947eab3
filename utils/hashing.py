import base64
import binascii
import secrets

from passlib.crypto.digest import pbkdf2_hmac
from passlib.utils import consteq

SALT_BYTES = 64
PBKDF2_DIGEST = "sha512"
PBKDF2_ROUNDS = 210_000


def hash_password(password: str, rounds: int = PBKDF2_ROUNDS) -> tuple[str, str]:
    """
    Derive a salted one-way hash of ``password``.

    A fresh random salt is drawn on every call, so two hashes of the same
    password never share a salt.

    Returns:
        (hash, salt), both base64 encoded
    """
    salt = secrets.token_bytes(SALT_BYTES)
    digest = pbkdf2_hmac(PBKDF2_DIGEST, password.encode("utf-8"), salt, rounds)
    return base64.b64encode(digest).decode("ascii"), base64.b64encode(salt).decode("ascii")


def verify_password(password: str, stored_hash: str | None, stored_salt: str | None,
                    rounds: int = PBKDF2_ROUNDS) -> bool:
    # Accounts created through an external provider have neither
    if not stored_hash or not stored_salt:
        return False

    try:
        salt = base64.b64decode(stored_salt, validate=True)
        expected = base64.b64decode(stored_hash, validate=True)
    except (binascii.Error, ValueError):
        return False

    computed = pbkdf2_hmac(PBKDF2_DIGEST, password.encode("utf-8"), salt, rounds)
    return consteq(computed, expected)
