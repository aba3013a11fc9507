import asyncio
import logging
import time
from typing import Callable, Optional

import httpx
import jwt

from catalog_admin.core.errors import TransportError, Unauthenticated
from catalog_admin.schemas import TokenPair
from catalog_admin.store.token_store import TokenStore

logger = logging.getLogger(__name__)


def token_expiry(token: str) -> Optional[float]:
    """Return the ``exp`` claim of a JWT, or None when it has none.

    Raises jwt.PyJWTError when the token is not a JWT at all.
    """
    claims = jwt.decode(token, options={"verify_signature": False})
    exp = claims.get("exp")
    return float(exp) if exp is not None else None


class CredentialProvider:
    """
    Owns the dashboard session: access token, refresh credential and
    their persisted copy.

    Usage:
        provider = CredentialProvider(store, http, settings.IDENTITY_BASE)
        await provider.restore()            # on start
        token = await provider.get_valid_token()
        await provider.logout()             # teardown

    A stale access token is exchanged with the identity backend before it
    is handed out. When that is impossible the session is cleared and
    ``Unauthenticated`` is raised.
    """

    def __init__(
        self,
        store: TokenStore,
        http: httpx.AsyncClient,
        identity_base: str,
        leeway_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.http = http
        self.identity_base = identity_base.rstrip("/")
        self.leeway_seconds = leeway_seconds
        self._clock = clock
        self._token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._lock = asyncio.Lock()

    # ── session lifecycle ──

    async def restore(self) -> bool:
        """Silently resume a persisted session. Never raises."""
        if not await self._load_persisted():
            return False
        try:
            await self.get_valid_token()
        except Unauthenticated:
            logger.info("Persisted session could not be restored")
            return False
        return True

    async def login(self, username: str, password: str) -> str:
        try:
            resp = await self.http.post(
                f"{self.identity_base}/auth/login",
                json={"email": username, "password": password},
            )
        except httpx.HTTPError as exc:
            raise TransportError(status=None, reason=str(exc)) from exc
        if 400 <= resp.status_code < 500:
            raise Unauthenticated("INVALID_CREDENTIALS", status=resp.status_code)
        if not resp.is_success:
            raise TransportError(status=resp.status_code)
        pair = TokenPair.model_validate(resp.json())
        await self._persist(pair.access_token, pair.refresh_token)
        logger.info("Logged in as %s", username)
        return pair.access_token

    async def logout(self) -> None:
        refresh = self._refresh_token
        if refresh is None:
            stored = await self.store.load()
            refresh = stored.refresh_token if stored else None
        if refresh:
            try:
                await self.http.post(f"{self.identity_base}/auth/logout", json={"refresh_token": refresh})
            except httpx.HTTPError as exc:
                logger.warning("Could not revoke refresh token: %s", exc)
        await self._clear()
        logger.info("Session cleared")

    def is_authenticated(self) -> bool:
        """Answered from memory. A persisted session counts once ``restore`` picked it up."""
        return self._token is not None

    # ── token access ──

    async def get_valid_token(self, rejected: Optional[str] = None) -> str:
        """
        Return a currently valid access token.

        Args:
            rejected: a token the remote side just refused. Forces a refresh
                unless another caller already replaced that token.
        """
        if self._token is None:
            await self._load_persisted()
        token = self._token
        if token is None:
            raise Unauthenticated("NO_SESSION")
        if rejected is None and self._is_fresh(token):
            return token

        async with self._lock:
            # someone else may have refreshed or cleared while we waited
            if self._token is None:
                raise Unauthenticated("NO_SESSION")
            if rejected is not None and self._token != rejected:
                return self._token
            if rejected is None and self._is_fresh(self._token):
                return self._token
            return await self._refresh()

    async def _refresh(self) -> str:
        if not self._refresh_token:
            await self._clear()
            raise Unauthenticated("NO_REFRESH_TOKEN")
        try:
            resp = await self.http.post(
                f"{self.identity_base}/auth/refresh",
                json={"refresh_token": self._refresh_token},
            )
        except httpx.HTTPError as exc:
            logger.warning("Token refresh failed: %s", exc)
            await self._clear()
            raise Unauthenticated("REFRESH_FAILED", reason=str(exc)) from exc
        if not resp.is_success:
            logger.warning("Token refresh rejected with status %s", resp.status_code)
            await self._clear()
            raise Unauthenticated("REFRESH_FAILED", status=resp.status_code)
        try:
            pair = TokenPair.model_validate(resp.json())
        except ValueError as exc:
            await self._clear()
            raise Unauthenticated("REFRESH_FAILED", reason="malformed token response") from exc
        await self._persist(pair.access_token, pair.refresh_token)
        logger.info("Access token refreshed")
        return pair.access_token

    def _is_fresh(self, token: str) -> bool:
        try:
            exp = token_expiry(token)
        except jwt.PyJWTError:
            return False
        if exp is None:
            return True
        return exp - self.leeway_seconds > self._clock()

    # ── persistence ──

    async def _load_persisted(self) -> bool:
        stored = await self.store.load()
        if self._token is not None:
            # a concurrent caller already holds a newer session
            return True
        if stored is None:
            return False
        self._token, self._refresh_token = stored.token, stored.refresh_token
        return True

    async def _persist(self, token: str, refresh_token: Optional[str]) -> None:
        self._token = token
        self._refresh_token = refresh_token or self._refresh_token
        await self.store.save(self._token, self._refresh_token)

    async def _clear(self) -> None:
        self._token = None
        self._refresh_token = None
        await self.store.clear()
