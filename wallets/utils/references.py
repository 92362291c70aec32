import secrets
import string
import time

_ALPHANUMERIC = string.ascii_lowercase + string.digits


def _millis():
    return int(time.time() * 1000)


def generate_transaction_id():
    """``TXN<epoch millis><7 random digits>``, shared by both legs of a transfer."""
    return f"TXN{_millis()}{secrets.randbelow(10**7):07d}"


def generate_reference(prefix):
    """Gateway reference such as ``WD_1718000000000_k3j9x0a1b``."""
    suffix = "".join(secrets.choice(_ALPHANUMERIC) for _ in range(9))
    return f"{prefix}_{_millis()}_{suffix}"
