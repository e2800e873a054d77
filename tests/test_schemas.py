from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from assetrepo.context import OperationContext
from assetrepo.schemas import (
    AssetInfo,
    AssetInfoPatch,
    DirectoryInfo,
    EntityType,
    TransferProgress,
    TransferType,
    guess_content_type,
    next_timestamp,
)


def test_asset_info_normalizes_naive_datetimes() -> None:
    info = AssetInfo(
        name="a.txt",
        created=datetime(2026, 3, 1, 9, 0, 0),
        modified="2026-03-01T10:00:00+09:00",
        size=4,
    )

    assert info.type == EntityType.ASSET
    assert info.created.tzinfo == timezone.utc
    assert info.modified == datetime(2026, 3, 1, 1, 0, 0, tzinfo=timezone.utc)


def test_info_models_reject_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        DirectoryInfo(name="a", created=datetime.now(tz=timezone.utc), size=1)
    with pytest.raises(ValidationError):
        AssetInfo(name="a", created=datetime.now(tz=timezone.utc), modified=datetime.now(tz=timezone.utc), size=-1)


def test_directory_info_dump_uses_type_tag() -> None:
    info = DirectoryInfo(name="docs", created=datetime(2026, 1, 1, tzinfo=timezone.utc))

    assert info.model_dump(mode="json")["type"] == "directory"
    assert info.is_directory and not info.is_asset


def test_patch_applies_only_set_fields() -> None:
    info = AssetInfo(
        name="a.txt",
        created=datetime(2026, 1, 1, tzinfo=timezone.utc),
        modified=datetime(2026, 1, 1, tzinfo=timezone.utc),
        checked_out_by="alice",
    )

    patched = AssetInfoPatch(checked_out=True).apply(info)

    assert patched.checked_out is True
    assert patched.checked_out_by == "alice"
    assert info.checked_out is False


def test_next_timestamp_strictly_increases() -> None:
    future = datetime(2999, 1, 1, tzinfo=timezone.utc)

    assert next_timestamp(future) > future
    assert next_timestamp(None).tzinfo is not None


def test_guess_content_type() -> None:
    assert guess_content_type("photo.jpg") == "image/jpeg"
    assert guess_content_type("/docs/readme.txt") == "text/plain"
    assert guess_content_type("no-extension") is None


def test_transfer_progress_rejects_negative_counts() -> None:
    with pytest.raises(ValidationError):
        TransferProgress(type=TransferType.READ, read=-1)


def test_operation_context_normalizes_paths() -> None:
    context = OperationContext.from_target("/a//b/")
    moved = context.with_path("/c/")

    assert context.path.endswith("b")
    assert "//" not in context.path
    assert moved.path.endswith("c")
    assert OperationContext.from_search("x").is_literal_search
