"""Password strength validation utilities."""

import re

SPECIAL_CHARS = r"[!@#$%^&*(),.?\":{}|<>[\]\\/_\-+=~`';]"


def validate_password_strength(
    password: str, min_length: int = 8, max_length: int = 128
) -> tuple[bool, str]:
    """
    Validate password meets security requirements.

    Requirements:
    - Between min_length and max_length characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(password, str) or len(password) < min_length:
        return False, f"Password must be at least {min_length} characters long"

    if len(password) > max_length:
        return False, f"Password must be at most {max_length} characters long"

    if not re.search(r"[A-Z]", password):
        return False, "Password must contain at least one uppercase letter"

    if not re.search(r"[a-z]", password):
        return False, "Password must contain at least one lowercase letter"

    if not re.search(r"\d", password):
        return False, "Password must contain at least one digit"

    if not re.search(SPECIAL_CHARS, password):
        return False, "Password must contain at least one special character"

    return True, ""
