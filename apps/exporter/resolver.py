"""
Key Resolver - turns one key into an exported record.

Resolution is three sequential fetches: type, value (dispatched on type) and
TTL. Any failure is wrapped in KeyResolutionError tagged with the key.
"""

from typing import Any, Awaitable, Callable

from apps.exporter.errors import KeyResolutionError, UnsupportedKeyTypeError
from utils.schemas import (
    BaseRecord,
    HashRecord,
    ListRecord,
    ScoredMember,
    SetRecord,
    SortedSetRecord,
    StreamEntry,
    StreamRecord,
    StringRecord,
)
from utils.store import KeyValueStore


class KeyResolver:
    """Resolve keys into typed records using a KeyValueStore."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._fetchers: dict[str, Callable[[str], Awaitable[BaseRecord]]] = {
            "string": self._fetch_string,
            "list": self._fetch_list,
            "set": self._fetch_set,
            "zset": self._fetch_sorted_set,
            "hash": self._fetch_hash,
            "stream": self._fetch_stream,
        }

    async def resolve(self, key: str) -> BaseRecord:
        """Fetch type, value and TTL for ``key``.

        Args:
            key: Key to resolve

        Returns:
            Typed record; ``ttl`` set only when the key expires in the future

        Raises:
            KeyResolutionError: If any of the three fetches fails or the type is unsupported
        """
        try:
            key_type = await self.store.key_type(key)
        except Exception as e:
            raise KeyResolutionError(key, "type", e) from e

        fetch = self._fetchers.get(key_type)
        try:
            if fetch is None:
                raise UnsupportedKeyTypeError(key_type)
            record = await fetch(key)
        except Exception as e:
            raise KeyResolutionError(key, "value", e) from e

        try:
            ttl = await self.store.ttl(key)
        except Exception as e:
            raise KeyResolutionError(key, "TTL", e) from e

        if ttl > 0:
            record = record.model_copy(update={"ttl": ttl})
        return record

    async def _fetch_string(self, key: str) -> StringRecord:
        value = await self.store.get_string(key)
        if value is None:
            raise LookupError("key no longer exists")
        return StringRecord(key=key, value=value)

    async def _fetch_list(self, key: str) -> ListRecord:
        return ListRecord(key=key, value=await self.store.get_list(key))

    async def _fetch_set(self, key: str) -> SetRecord:
        return SetRecord(key=key, value=await self.store.get_set(key))

    async def _fetch_sorted_set(self, key: str) -> SortedSetRecord:
        pairs = await self.store.get_sorted_set(key)
        members = [ScoredMember(Score=score, Member=member) for member, score in pairs]
        return SortedSetRecord(key=key, value=members)

    async def _fetch_hash(self, key: str) -> HashRecord:
        return HashRecord(key=key, value=await self.store.get_hash(key))

    async def _fetch_stream(self, key: str) -> StreamRecord:
        entries: list[Any] = await self.store.get_stream(key)
        return StreamRecord(
            key=key,
            value=[StreamEntry(ID=entry_id, Values=fields) for entry_id, fields in entries],
        )
