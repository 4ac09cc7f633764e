import secrets
import string

ALPHABET = string.ascii_letters + string.digits

ROOM_ID_LENGTH = 6
HOST_KEY_LENGTH = 4
USER_KEY_LENGTH = 4
USER_ID_LENGTH = 4


def generate_id(length: int) -> str:
    """Random alphanumeric id. Uniqueness against stored rows is not checked."""
    if length < 1:
        raise ValueError("Identifier length must be positive")
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
