"""Tests for TranslationRecorder."""

from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING, Any

import pytest

from core.telemetry.recorder import TelemetryQueueFullError, TranslationRecorder
from models.translation_models import TranslationRecord

if TYPE_CHECKING:
    from pathlib import Path


def _record(text: str = "Hello", *, cache_hit: bool = False) -> TranslationRecord:
    return TranslationRecord(
        source_text=text,
        target_text=f"{text} (fr)",
        source_lang="en",
        target_lang="fr",
        api_url="http://alpha.invalid/chat",
        provider="alpha",
        model="a1",
        cache_key="transgate:abc",
        cache_hit=cache_hit,
        process_time_ms=12.5,
    )


def _read_lines(path: Path) -> list[dict[str, Any]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.mark.asyncio
async def test_records_are_written_as_json_lines(tmp_path: Path) -> None:
    path: Path = tmp_path / "logs" / "translation.log"
    recorder = TranslationRecorder(path)

    recorder.log_translation(_record("Hello"))
    recorder.log_translation(_record("こんにちは", cache_hit=True))
    await recorder.close()

    lines: list[dict[str, Any]] = _read_lines(path)
    assert [line["source_text"] for line in lines] == ["Hello", "こんにちは"]
    assert [line["cache_hit"] for line in lines] == [False, True]
    assert lines[0]["provider"] == "alpha"
    assert lines[0]["process_time_ms"] == 12.5
    assert datetime.fromisoformat(lines[0]["timestamp"]).tzinfo is not None
    assert "こんにちは" in path.read_text(encoding="utf-8")


@pytest.mark.asyncio
async def test_log_translation_starts_consumer_lazily(tmp_path: Path) -> None:
    recorder = TranslationRecorder(tmp_path / "translation.log")
    assert recorder.is_running is False

    recorder.log_translation(_record())

    assert recorder.is_running is True
    await recorder.close()
    assert recorder.is_running is False


@pytest.mark.asyncio
async def test_full_queue_drops_record_and_raises(tmp_path: Path) -> None:
    path: Path = tmp_path / "translation.log"
    recorder = TranslationRecorder(path, queue_size=1)

    recorder.log_translation(_record("kept"))
    # The consumer has not run yet, so the single slot is still taken.
    with pytest.raises(TelemetryQueueFullError):
        recorder.log_translation(_record("dropped"))
    await recorder.close()

    assert [line["source_text"] for line in _read_lines(path)] == ["kept"]


@pytest.mark.asyncio
async def test_close_flushes_queued_records(tmp_path: Path) -> None:
    path: Path = tmp_path / "translation.log"
    recorder = TranslationRecorder(path, queue_size=10)
    recorder.start()

    for index in range(5):
        recorder.log_translation(_record(f"text{index}"))
    await recorder.close()

    assert len(_read_lines(path)) == 5


@pytest.mark.asyncio
async def test_close_is_idempotent_and_stops_accepting_records(tmp_path: Path) -> None:
    path: Path = tmp_path / "translation.log"
    recorder = TranslationRecorder(path)
    recorder.log_translation(_record())

    await recorder.close()
    await recorder.close()
    recorder.log_translation(_record("late"))

    assert len(_read_lines(path)) == 1


@pytest.mark.asyncio
async def test_disabled_recorder_discards_records(tmp_path: Path) -> None:
    path: Path = tmp_path / "translation.log"
    recorder = TranslationRecorder(path, enabled=False)

    recorder.log_translation(_record())
    await recorder.close()

    assert recorder.is_running is False
    assert not path.exists()
