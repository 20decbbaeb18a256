import secrets
import string
import uuid

SID_ALPHABET = string.ascii_letters + string.digits
SID_LENGTH = 16
INBOX_PREFIX = "_INBOX"

def generate_sid(length: int = SID_LENGTH) -> str:
    """
    Return a random alphanumeric subscription id of `length` characters.
    """
    return ''.join(secrets.choice(SID_ALPHABET) for _ in range(length))

def new_inbox(prefix: str = INBOX_PREFIX) -> str:
    """
    Return a fresh reply subject, e.g. "_INBOX.3f2c...".
    """
    return f"{prefix}.{uuid.uuid4().hex}"
