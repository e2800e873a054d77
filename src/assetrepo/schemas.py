from __future__ import annotations

import mimetypes
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def guess_content_type(name: str) -> str | None:
    content_type, _ = mimetypes.guess_type(name, strict=False)
    return content_type


def next_timestamp(previous: datetime | None = None) -> datetime:
    """Return the current time, nudged past ``previous`` when the clock has not advanced."""
    current = now_utc()
    if previous is not None and current <= previous:
        return previous + timedelta(microseconds=1)
    return current


def _normalize_datetime(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DTOBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


class EntityType(StrEnum):
    DIRECTORY = "directory"
    ASSET = "asset"


class TransferType(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    READ = "read"


class DirectoryInfo(DTOBase):
    name: str
    type: Literal[EntityType.DIRECTORY] = EntityType.DIRECTORY
    created: datetime

    @field_validator("created", mode="after")
    @classmethod
    def validate_datetime_fields(cls, value: datetime) -> datetime:
        return _normalize_datetime(value)

    @property
    def is_directory(self) -> bool:
        return True

    @property
    def is_asset(self) -> bool:
        return False


class AssetInfo(DTOBase):
    name: str
    type: Literal[EntityType.ASSET] = EntityType.ASSET
    created: datetime
    modified: datetime
    content_type: str | None = None
    size: int = Field(default=0, ge=0)
    checked_out: bool = False
    checked_out_by: str = ""

    @field_validator("created", "modified", mode="after")
    @classmethod
    def validate_datetime_fields(cls, value: datetime) -> datetime:
        return _normalize_datetime(value)

    @property
    def is_directory(self) -> bool:
        return False

    @property
    def is_asset(self) -> bool:
        return True


EntityInfo = DirectoryInfo | AssetInfo


class AssetInfoPatch(DTOBase):
    """Mutable asset metadata. Fields left as ``None`` keep their current value."""

    checked_out: bool | None = None
    checked_out_by: str | None = None

    def apply(self, info: AssetInfo) -> AssetInfo:
        return info.model_copy(update=self.model_dump(exclude_none=True))


class TransferProgress(DTOBase):
    type: TransferType
    read: int = Field(ge=0)
    rate: int = Field(default=0, ge=0)


class TransferProgressEvent(DTOBase):
    path: str
    info: AssetInfo
    progress: TransferProgress
