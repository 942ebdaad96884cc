"""Opaque token generation.

Editor plugins send ``Authorization: Basic base64(<api key>)``, so API tokens
are stored in their base64 form and looked up exactly as received.
"""

from __future__ import annotations

import base64
import uuid

from codetime.schemas import TokenData


def random_token() -> str:
    """A fresh random token in the UUID format editor plugins expect for API keys."""
    return str(uuid.uuid4())


def to_base64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


def mk_token_data(owner: str) -> TokenData:
    """Mint an access/refresh pair for ``owner`` (not yet stored)."""
    return TokenData(
        owner=owner,
        token=to_base64(random_token()),
        refresh_token=to_base64(random_token()),
    )
