"""本地目录输出的批处理流程测试。"""

from __future__ import annotations

import csv
import threading
from pathlib import Path

import pytest
from PIL import Image

from image_uploader.core.config import FilesystemTarget, JobConfig
from image_uploader.core.models import BatchResult
from image_uploader.core.progress import BatchProgress
from image_uploader.core.report import format_summary
from image_uploader.processing import worker
from image_uploader.processing.pipeline import process_batch, run_batch, save_single_image
from image_uploader.sinks.filesystem import FilesystemSink


def test_corrupt_file_is_isolated(image_folder: Path, tmp_path: Path) -> None:
    output = tmp_path / "output"
    updates: list[BatchProgress] = []

    result = run_batch(image_folder, FilesystemSink(output), progress_callback=updates.append)

    assert result.total_files == 3
    assert result.processed_files == 2
    assert result.failed_files == 1
    assert result.processed_files + result.failed_files == result.total_files
    assert not result.is_successful
    assert len(result.error_messages) == 1
    assert "broken.jpg" in result.error_messages[0]

    assert [u.current_index for u in updates] == [1, 2, 3]
    assert [u.current_file_name for u in updates] == ["broken.jpg", "cat.jpg", "dog.PNG"]
    assert all(u.total_count == 3 for u in updates)
    assert updates[-1].percentage == 100


def test_renditions_are_written_per_image(image_folder: Path, tmp_path: Path) -> None:
    output = tmp_path / "output"

    run_batch(image_folder, FilesystemSink(output))

    expected = {"small": (800, 533), "medium": (1200, 800), "large": (1920, 1280)}
    for tier, size in expected.items():
        with Image.open(output / "cat" / f"cat_{tier}.webp") as img:
            assert img.format == "WEBP"
            assert img.size == size

    # 小图不放大
    with Image.open(output / "dog" / "dog_large.webp") as img:
        assert img.size == (300, 500)

    assert not (output / "broken").exists()


def test_existing_renditions_are_overwritten(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    source.mkdir()
    Image.new("RGB", (100, 100), "white").save(source / "cat.png")
    (output / "cat").mkdir(parents=True)
    (output / "cat" / "cat_small.webp").write_bytes(b"stale")

    result = run_batch(source, FilesystemSink(output))

    assert result.is_successful
    assert (output / "cat" / "cat_small.webp").read_bytes() != b"stale"


def test_missing_input_folder_returns_result(tmp_path: Path) -> None:
    result = run_batch(tmp_path / "missing", FilesystemSink(tmp_path / "out"))

    assert result.total_files == 0
    assert result.processed_files == 0
    assert not result.is_successful
    assert len(result.error_messages) == 1
    assert not (tmp_path / "out").exists()


def test_empty_folder_returns_explanation(tmp_path: Path) -> None:
    source = tmp_path / "input"
    source.mkdir()
    (source / "notes.txt").write_text("hello")
    updates: list[BatchProgress] = []

    result = run_batch(source, FilesystemSink(tmp_path / "out"), progress_callback=updates.append)

    assert result.total_files == 0
    assert result.error_messages
    assert updates == []


def test_unwritable_base_folder_fails_whole_run(image_folder: Path, tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a folder")

    result = run_batch(image_folder, FilesystemSink(blocker / "output"))

    assert result.total_files == 3
    assert result.processed_files == 0
    assert result.failed_files == 0
    assert len(result.error_messages) == 1


def test_cancel_before_start_processes_nothing(image_folder: Path, tmp_path: Path) -> None:
    cancel = threading.Event()
    cancel.set()

    result = run_batch(image_folder, FilesystemSink(tmp_path / "out"), cancel_event=cancel)

    assert result.cancelled
    assert result.processed_files == 0
    assert result.failed_files == 0


def test_cancel_during_run_stops_between_files(image_folder: Path, tmp_path: Path) -> None:
    cancel = threading.Event()
    seen: list[int] = []

    def on_progress(update: BatchProgress) -> None:
        seen.append(update.current_index)
        if update.current_index == 2:
            cancel.set()

    sink = FilesystemSink(tmp_path / "out")

    result = run_batch(image_folder, sink, progress_callback=on_progress, cancel_event=cancel)

    assert result.cancelled
    assert seen == [1, 2]
    assert result.processed_files == 0
    # broken.jpg 失败，cat.jpg 在第一个档位前被中断
    assert result.failed_files == 2
    assert result.outcomes[-1].status == "cancelled"
    assert result.processed_files + result.failed_files < result.total_files


def test_process_batch_writes_report(image_folder: Path, tmp_path: Path) -> None:
    output = tmp_path / "output"
    config = JobConfig(
        input_folder=image_folder,
        target=FilesystemTarget(output_dir=output),
        report_filename="report.csv",
    )

    result = process_batch(config)

    assert result.processed_files == 2
    with (output / "report.csv").open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["status"] for row in rows] == ["error-load", "processed", "processed"]
    assert rows[1]["relative_dir"] == "cat"
    assert rows[1]["renditions"] == "3"


def test_save_single_image_uses_preview_policy(tmp_path: Path) -> None:
    source = tmp_path / "photo.png"
    Image.new("RGB", (2048, 1536), "yellow").save(source)

    outcome = save_single_image(source, tmp_path / "app-data", "front")

    assert outcome.succeeded
    assert outcome.renditions == 3
    assert outcome.relative_dir == ""
    expected = {("large", "L"): (1024, 768), ("medium", "M"): (512, 384), ("small", "S"): (256, 192)}
    for (folder, suffix), size in expected.items():
        with Image.open(tmp_path / "app-data" / folder / f"photo_front_{suffix}.jpg") as img:
            assert img.format == "JPEG"
            assert img.size == size


def test_summary_lists_at_most_five_errors() -> None:
    result = BatchResult(total_files=8, processed_files=1, failed_files=7)
    result.error_messages = [f"error {idx}" for idx in range(7)]

    lines = format_summary(result).splitlines()

    assert lines[0].startswith("共 8 个文件")
    assert lines[1:6] == [f"- error {idx}" for idx in range(5)]
    assert lines[-1] == "+2 more"


def test_is_successful_requires_processed_files() -> None:
    assert not BatchResult().is_successful
    assert BatchResult(total_files=1, processed_files=1).is_successful
    assert not BatchResult(total_files=2, processed_files=1, failed_files=1).is_successful


def test_oversized_image_is_isolated(image_folder: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # cat.jpg (2400x1600) 超过两倍上限时 Pillow 抛出 DecompressionBombError，dog.PNG 不受影响
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1_000_000)

    result = run_batch(image_folder, FilesystemSink(tmp_path / "out"))

    assert result.total_files == 3
    assert result.processed_files == 1
    assert result.failed_files == 2
    assert [outcome.status for outcome in result.outcomes] == ["error-load", "error-load", "processed"]
    assert (tmp_path / "out" / "dog" / "dog_small.webp").exists()


def test_unexpected_error_fails_only_that_file(
    image_folder: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    original_render = worker.render

    def flaky_render(image, base_name, *args, **kwargs):
        if base_name == "cat":
            raise RuntimeError("unexpected failure")
        return original_render(image, base_name, *args, **kwargs)

    monkeypatch.setattr(worker, "render", flaky_render)

    result = run_batch(image_folder, FilesystemSink(tmp_path / "out"))

    assert result.processed_files == 1
    assert result.failed_files == 2
    assert result.outcomes[1].status == "error-worker"
    assert result.processed_files + result.failed_files == result.total_files


def test_blocked_subfolder_only_fails_that_file(image_folder: Path, tmp_path: Path) -> None:
    output = tmp_path / "out"
    output.mkdir()
    (output / "cat").write_text("a file where the folder should be")

    result = run_batch(image_folder, FilesystemSink(output))

    assert result.processed_files == 1
    assert result.failed_files == 2
    assert [outcome.status for outcome in result.outcomes] == ["error-load", "error-container", "processed"]
    assert (output / "dog" / "dog_medium.webp").exists()
