"""
LINE Login ID token verification.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from reservation_api.core.config import Settings
from reservation_api.core.errors import Unauthorized, UpstreamUnavailable
from reservation_api.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LineProfile:
    line_user_id: str
    name: Optional[str] = None
    picture: Optional[str] = None
    email: Optional[str] = None


class LineClient:
    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.channel_id = settings.LINE_CHANNEL_ID
        self.verify_url = settings.LINE_VERIFY_URL
        self._http_client = http_client

    async def verify_id_token(self, id_token: str) -> LineProfile:
        """
        Verify an ID token with LINE and return the claims we use.
        Raises Unauthorized for a rejected token, UpstreamUnavailable if LINE is unreachable.
        """
        data = {"id_token": id_token, "client_id": self.channel_id}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.verify_url, data=data)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await client.post(self.verify_url, data=data)
        except httpx.HTTPError as e:
            logger.error("line_verify_unreachable", error=str(e))
            raise UpstreamUnavailable("LINE login is temporarily unavailable") from e

        if response.status_code != 200:
            logger.warning("line_verify_rejected", status_code=response.status_code)
            raise Unauthorized("Invalid ID token")

        claims = response.json()
        line_user_id = claims.get("sub")
        if not line_user_id:
            raise Unauthorized("Failed to get LINE user ID")

        return LineProfile(
            line_user_id=line_user_id,
            name=claims.get("name"),
            picture=claims.get("picture"),
            email=claims.get("email"),
        )
