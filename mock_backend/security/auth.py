"""
Bearer identity for mock backend

The mock backend trusts the bearer token as the user identity; token
issuance belongs to the auth service.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException

logger = logging.getLogger(__name__)


def get_user(authorization: Optional[str]) -> Optional[str]:
    """Extract the user identity from an Authorization header"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class BearerIdentity:
    """
    FastAPI dependency resolving the caller's identity.

    Args:
        required: If True, reject requests without a bearer token
    """

    def __init__(self, required: bool = False):
        self.required = required

    async def __call__(self, authorization: Optional[str] = Header(None)) -> Optional[str]:
        user_id = get_user(authorization)
        if self.required and not user_id:
            logger.warning("Rejected unauthenticated cart request")
            raise HTTPException(status_code=401, detail="Authentication required")
        return user_id


# Dependency instances
require_user = BearerIdentity(required=True)
optional_user = BearerIdentity(required=False)
