from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, InvalidHashError

passwordHasher = PasswordHasher(encoding="utf-8")


def makePassword(password: str) -> str:
    """Hash a plain-text account password using Argon2."""
    return passwordHasher.hash(password)


def checkPassword(password: str, actual_password: str) -> bool:
    """
    Verify a plain-text password against the stored Argon2 hash of an account.

    Returns:
        bool: True if the password matches the hash, False otherwise
        (including when the stored value is not a valid Argon2 hash).
    """
    try:
        passwordHasher.verify(actual_password, password)
        return True
    except (VerifyMismatchError, InvalidHashError):
        return False
