"""
Pydantic Schemas - Exported Record Models

Defines the record written for every exported key. A record is a tagged union
keyed by ``type``, one model per supported Redis data type:

    {"key": "user:1", "type": "hash", "value": {"name": "a"}, "ttl": 3600}

``ttl`` is only present when the key expires; persistent keys omit it.

Usage:
    from utils.schemas import HashRecord, encode_record, decode_record

    record = HashRecord(key="user:1", value={"name": "a"}, ttl=3600)
    line = encode_record(record)
    assert decode_record(line) == record
"""

from typing import Annotated, Literal, Optional, Union

import orjson
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ScoredMember(BaseModel):
    """Sorted-set member with its score."""

    Score: float
    Member: str


class StreamEntry(BaseModel):
    """Single stream entry: entry ID and its field map."""

    ID: str
    Values: dict[str, str]


class BaseRecord(BaseModel):
    """Fields shared by every exported record."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1, description="Redis key")
    ttl: Optional[int] = Field(default=None, gt=0, description="Remaining TTL in seconds")


class StringRecord(BaseRecord):
    type: Literal["string"] = "string"
    value: str


class ListRecord(BaseRecord):
    type: Literal["list"] = "list"
    value: list[str]


class SetRecord(BaseRecord):
    type: Literal["set"] = "set"
    value: list[str]


class SortedSetRecord(BaseRecord):
    type: Literal["zset"] = "zset"
    value: list[ScoredMember]


class HashRecord(BaseRecord):
    type: Literal["hash"] = "hash"
    value: dict[str, str]


class StreamRecord(BaseRecord):
    type: Literal["stream"] = "stream"
    value: list[StreamEntry]


Record = Annotated[
    Union[StringRecord, ListRecord, SetRecord, SortedSetRecord, HashRecord, StreamRecord],
    Field(discriminator="type"),
]

_record_adapter: TypeAdapter[Record] = TypeAdapter(Record)


def encode_record(record: BaseRecord) -> bytes:
    """Serialize a record to one compact JSON object.

    Keys are emitted in the order key, type, value, ttl; ttl is dropped when unset.
    """
    payload = {
        "key": record.key,
        "type": record.type,  # type: ignore[attr-defined]
        "value": record.model_dump(include={"value"})["value"],
    }
    if record.ttl is not None:
        payload["ttl"] = record.ttl
    return orjson.dumps(payload)


def decode_record(data: Union[bytes, str]) -> BaseRecord:
    """Parse one JSON object back into the matching record model.

    Raises:
        pydantic.ValidationError: If the payload is not a valid record
    """
    return _record_adapter.validate_json(data)
