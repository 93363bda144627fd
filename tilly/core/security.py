import hmac


def verify_cron_secret(token: str | None, secret: str) -> bool:
    """Check a bearer token against the configured shared secret.

    An unset secret rejects every request.
    """
    if not token or not secret:
        return False
    return hmac.compare_digest(token.encode(), secret.encode())
