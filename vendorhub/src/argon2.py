from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError

passwordHasher = PasswordHasher(encoding="utf-8")


def makePassword(password: str) -> str:
    """
    Hash a plain-text password using Argon2.

    Args:
        password (str): The plain-text password to be hashed.

    Returns:
        str: The Argon2 hash of the given password.
    """
    return passwordHasher.hash(password)


def checkPassword(password: str, actual_password: str) -> bool:
    """
    Verify a plain-text password against a stored Argon2 hash.

    A stored value which is not an Argon2 hash never matches.
    """
    try:
        return passwordHasher.verify(actual_password, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def refreshPassword(account, password: str) -> bool:
    """
    Re-hash the password of `account` when the hasher parameters changed
    since it was stored. Call only after a successful `checkPassword()`.

    Returns:
        bool: True if the stored hash was replaced.
    """
    if not passwordHasher.check_needs_rehash(account.password):
        return False
    account.password = makePassword(password)
    return True
