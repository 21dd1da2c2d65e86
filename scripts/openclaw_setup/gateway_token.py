"""
Gateway auth token generation.

Produces the 48-character hex token embedded in openclaw.json. Sources are
tried strongest first; a weaker source is used only when the stronger one is
unavailable, so token generation never fails the install.
"""

import hashlib
import logging
import re
import secrets
import time
from pathlib import Path

logger = logging.getLogger(__name__)

TOKEN_BYTES = 24
TOKEN_LENGTH = TOKEN_BYTES * 2
TOKEN_PATTERN = re.compile(r'^[0-9a-f]{%d}$' % TOKEN_LENGTH)

URANDOM_PATH = Path('/dev/urandom')


def token_from_secrets() -> str:
    """Cryptographic RNG of the operating system."""
    return secrets.token_hex(TOKEN_BYTES)


def token_from_urandom(path: Path = None) -> str:
    """Raw bytes from the system entropy device."""
    path = path or URANDOM_PATH
    with open(path, 'rb') as f:
        data = f.read(TOKEN_BYTES)
    if len(data) != TOKEN_BYTES:
        raise OSError(f'Short read from {path}: {len(data)} bytes')
    return data.hex()


def token_from_clock() -> str:
    """Weak last resort: hash of the nanosecond clock."""
    return hashlib.sha256(str(time.time_ns()).encode('ascii')).hexdigest()[:TOKEN_LENGTH]


TOKEN_STRATEGIES = [
    ('secrets', token_from_secrets),
    ('urandom', token_from_urandom),
    ('clock', token_from_clock),
]


def generate_token(strategies: list = None) -> str:
    """Return a 48-character lowercase hex token from the first working strategy.

    Args:
        strategies: (name, callable) pairs tried in order (default TOKEN_STRATEGIES)

    Returns:
        Token string

    Raises:
        RuntimeError: If every strategy fails (cannot happen with the defaults,
            since the clock strategy has no external dependency)
    """
    strategies = TOKEN_STRATEGIES if strategies is None else strategies
    for name, strategy in strategies:
        try:
            token = strategy().strip().lower()
        except (OSError, NotImplementedError, ValueError) as e:
            logger.debug("Token source '%s' unavailable: %s", name, e)
            continue
        if not TOKEN_PATTERN.match(token):
            logger.debug("Token source '%s' returned malformed output, skipping", name)
            continue
        logger.debug("Gateway token generated from '%s'", name)
        return token
    raise RuntimeError('No token source available')
