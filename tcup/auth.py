# tcup/auth.py
import hmac
from typing import Optional

from .config import RelayConfig
from .errors import AuthenticationFailure


def authenticate(presented: bytes, configured: bytes, constant_time: bool = True) -> bool:
    """Accept iff the presented token equals the configured one, byte for byte.

    An empty configured token only accepts an empty presented token. No
    trimming or case-folding is applied.
    """
    if constant_time:
        return hmac.compare_digest(presented, configured)
    return presented == configured


def require_token(x_token: Optional[str], config: RelayConfig):
    # Header values arrive latin-1 decoded; encoding back yields the wire bytes.
    # A missing header counts as the empty string.
    presented = (x_token or "").encode("latin-1")
    if not authenticate(presented, config.token.encode("utf-8"), config.token_constant_time):
        raise AuthenticationFailure()
