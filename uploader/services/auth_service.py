import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException, status, Header

from uploader.config import config
from uploader.services.singleton_base_service import SingletonBaseService
from uploader.utils.cache import TTLCache

logger = logging.getLogger(__name__)

VERIFY_TOKEN_ENDPOINT = "/middleware/verify-token"


class AuthService(SingletonBaseService):
    """Bearer-token verification against the remote identity service."""

    def __init__(
            self,
            base_url: Optional[str] = None,
            transport: Optional[httpx.AsyncBaseTransport] = None,
            cache: Optional[TTLCache[Dict[str, Any]]] = None
    ):
        self.base_url = base_url if base_url is not None else config.AUTH_URL
        self._transport = transport
        self._cache = cache or TTLCache(maxsize=config.AUTH_CACHE_SIZE, ttl=config.AUTH_CACHE_TTL)

    def is_enabled(self) -> bool:
        return bool(self.base_url)

    @staticmethod
    def parse_bearer(authorization: Optional[str]) -> str:
        if not authorization or not authorization.strip():
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Authorization header missing.")

        parts = authorization.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid authorization format.")

        return parts[1]

    async def verify_token(self, token: str) -> Dict[str, Any]:
        cached = self._cache.get(token)
        if cached is not None:
            return cached

        try:
            async with httpx.AsyncClient(base_url=self.base_url, transport=self._transport, timeout=10.0) as client:
                response = await client.get(
                    VERIFY_TOKEN_ENDPOINT,
                    headers={"Authorization": f"Bearer {token}"}
                )
        except httpx.HTTPError as e:
            self._cache.pop(token)
            logger.warning("identity service unreachable: %s", e)
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Authentication failed.")

        if response.status_code != status.HTTP_200_OK:
            self._cache.pop(token)
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token.")

        user = response.json().get("user")
        if not user:
            self._cache.pop(token)
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token or user data.")

        self._cache.set(token, user)
        return user

    @classmethod
    async def get_current_user(
            cls,
            authorization: Optional[str] = Header(None)
    ) -> Optional[Dict[str, Any]]:
        service = cls.get_instance()
        if not service.is_enabled():
            return None

        return await service.verify_token(cls.parse_bearer(authorization))
