import hashlib
import hmac


def compute_signature(secret, body, digestmod=hashlib.sha512):
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, digestmod).hexdigest()


def verify_signature(secret, body, signature, digestmod=hashlib.sha512):
    """Constant-time check of a hex HMAC over the raw request body."""
    if not secret or not signature:
        return False
    expected = compute_signature(secret, body, digestmod)
    return hmac.compare_digest(expected, str(signature).strip().lower())


def verify_token(expected, provided):
    if not expected or not provided:
        return False
    return hmac.compare_digest(str(expected), str(provided))
