import logging
from typing import Optional

from fastapi import Header, HTTPException

logger = logging.getLogger(__name__)

PREFIX = "Bearer "


def get_current_user(authorization: Optional[str] = Header(default=None)) -> str:
    """Resolve the verified user id for a request.

    Token issuance lives outside this service; the bearer token it hands out
    is the user id itself.
    """
    if not authorization or not authorization.startswith(PREFIX):
        logger.info("rejected request without bearer token")
        raise HTTPException(status_code=401, detail="invalid_token")
    user_id = authorization[len(PREFIX) :].strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="invalid_token")
    return user_id
