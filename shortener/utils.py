import secrets
import string
import uuid

ALPHABET = string.ascii_letters + string.digits
SHORT_CODE_LENGTH = 6

def generate_short_code(length: int = SHORT_CODE_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))

def generate_delete_token() -> str:
    # 128 random bits as 32 hex chars, no separators
    return uuid.uuid4().hex
