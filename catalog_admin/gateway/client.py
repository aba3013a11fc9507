import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from catalog_admin.core.auth import CredentialProvider
from catalog_admin.core.errors import ApplicationError, TransportError, Unauthenticated

logger = logging.getLogger(__name__)

UnauthenticatedHook = Callable[[], Awaitable[None]]


def is_unauthorized_error(error: Dict[str, Any]) -> bool:
    return error.get("errorType") == "Unauthorized"


class GatewayClient:
    """
    Single entry point for every GraphQL query and mutation.

    Attaches the access token, retries exactly once after a forced token
    refresh when the call is refused as unauthorized, and maps every other
    failure onto TransportError / ApplicationError.
    """

    def __init__(
        self,
        endpoint: str,
        credentials: CredentialProvider,
        http: httpx.AsyncClient,
        on_unauthenticated: Optional[UnauthenticatedHook] = None,
    ):
        self.endpoint = endpoint
        self.credentials = credentials
        self.http = http
        self.on_unauthenticated = on_unauthenticated

    async def execute(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._execute(document, variables or {}, is_retry=False)

    async def _execute(self, document: str, variables: Dict[str, Any], is_retry: bool, rejected: Optional[str] = None) -> Dict[str, Any]:
        token = await self._token(rejected)

        try:
            resp = await self.http.post(
                self.endpoint,
                json={"query": document, "variables": variables},
                headers={"Authorization": token},
            )
        except httpx.HTTPError as exc:
            logger.warning("Gateway request failed: %s", exc)
            raise TransportError(status=None, reason=str(exc)) from exc

        if resp.status_code == 401:
            return await self._unauthorized(document, variables, is_retry, token)
        if not resp.is_success:
            raise TransportError(status=resp.status_code)

        try:
            body = resp.json()
        except ValueError as exc:
            raise TransportError(status=resp.status_code, reason="invalid JSON body") from exc
        if not isinstance(body, dict):
            raise TransportError(status=resp.status_code, reason="unexpected response shape")

        errors = body.get("errors") or []
        if errors:
            if any(is_unauthorized_error(e) for e in errors):
                return await self._unauthorized(document, variables, is_retry, token)
            raise ApplicationError(errors[0].get("message") or "GraphQL error occurred")
        return body.get("data") or {}

    async def _unauthorized(self, document: str, variables: Dict[str, Any], is_retry: bool, token: str) -> Dict[str, Any]:
        if is_retry:
            # a freshly refreshed token was refused too
            await self._session_lost()
            raise Unauthenticated("UNAUTHORIZED_AFTER_REFRESH")
        logger.info("Gateway refused the access token, refreshing and retrying once")
        return await self._execute(document, variables, is_retry=True, rejected=token)

    async def _token(self, rejected: Optional[str]) -> str:
        try:
            return await self.credentials.get_valid_token(rejected=rejected)
        except Unauthenticated:
            await self._session_lost()
            raise

    async def _session_lost(self) -> None:
        if self.on_unauthenticated is not None:
            await self.on_unauthenticated()
