from typing import Dict, Optional, Protocol
from dataclasses import dataclass
from redis.asyncio import Redis

@dataclass(frozen=True)
class StoredSession:
    token: str
    refresh_token: Optional[str] = None

class TokenStore(Protocol):
    async def load(self) -> Optional[StoredSession]: ...
    async def save(self, token: str, refresh_token: Optional[str]) -> None: ...
    async def clear(self) -> None: ...
    async def aclose(self) -> None: ...

def session_key(name: str) -> str:
    return f"session:{name}"

class RedisTokenStore:
    """Session credentials in one Redis hash, so clearing is a single DELETE."""

    def __init__(self, client: Redis, name: str):
        self.client = client
        self.key = session_key(name)

    @classmethod
    def from_url(cls, url: str, name: str) -> "RedisTokenStore":
        # no connection is made until the first command
        return cls(Redis.from_url(url, decode_responses=True), name)

    async def load(self) -> Optional[StoredSession]:
        data = await self.client.hgetall(self.key)
        if not data or not data.get("token"):
            return None
        return StoredSession(token=data["token"], refresh_token=data.get("refresh_token") or None)

    async def save(self, token: str, refresh_token: Optional[str]) -> None:
        mapping = {"token": token, "refresh_token": refresh_token or ""}
        await self.client.hset(self.key, mapping=mapping)

    async def clear(self) -> None:
        await self.client.delete(self.key)

    async def aclose(self) -> None:
        await self.client.aclose()

class MemoryTokenStore:
    def __init__(self, session: Optional[StoredSession] = None):
        self._data: Dict[str, str] = {}
        if session is not None:
            self._data = {"token": session.token, "refresh_token": session.refresh_token or ""}

    async def load(self) -> Optional[StoredSession]:
        if not self._data.get("token"):
            return None
        return StoredSession(token=self._data["token"], refresh_token=self._data.get("refresh_token") or None)

    async def save(self, token: str, refresh_token: Optional[str]) -> None:
        self._data = {"token": token, "refresh_token": refresh_token or ""}

    async def clear(self) -> None:
        self._data = {}

    async def aclose(self) -> None:
        pass

def get_token_store(url: str, name: str) -> TokenStore:
    if url.startswith("memory://"):
        return MemoryTokenStore()
    return RedisTokenStore.from_url(url, name)
