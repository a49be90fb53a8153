"""批处理流水线：扫描、逐个缩放、失败隔离与进度事件。"""

from __future__ import annotations

import csv
import logging
import threading
from pathlib import Path

import pytest
from PIL import Image

from batch_resizer.core import units
from batch_resizer.core.config import ResizeConfig, ResizeMode
from batch_resizer.core.exceptions import ConfigError, FolderError
from batch_resizer.core.models import ImageDocument
from batch_resizer.core.progress import ProgressEvent
from batch_resizer.core.report import write_csv_report
from batch_resizer.processing import worker
from batch_resizer.processing.pipeline import BatchRunner, process_batch

COPY = ResizeConfig(target_width=800, target_height=600, mode=ResizeMode.COPY)
REPLACE = ResizeConfig(target_width=800, target_height=600, mode=ResizeMode.REPLACE)


def _save(path: Path, size: tuple[int, int] = (40, 30), color: str = "blue") -> Path:
    Image.new("RGB", size, color).save(path)
    return path


def test_copy_mode_writes_resized_siblings(tmp_path: Path) -> None:
    _save(tmp_path / "a.png")
    _save(tmp_path / "b.jpg")

    summary = process_batch(tmp_path, COPY)

    assert summary.attempted == 2
    assert summary.succeeded == 2
    assert summary.failures == []
    assert summary.status == "completed"

    for original, resized, fmt in (("a.png", "a_resized.png", "PNG"), ("b.jpg", "b_resized.jpg", "JPEG")):
        with Image.open(tmp_path / original) as img:
            assert img.size == (40, 30)
        with Image.open(tmp_path / resized) as img:
            assert img.size == (800, 600)
            assert img.format == fmt

    assert [o.output_path for o in summary.outcomes] == [tmp_path / "a_resized.png", tmp_path / "b_resized.jpg"]


def test_replace_mode_overwrites_gif_in_place(tmp_path: Path) -> None:
    _save(tmp_path / "c.gif", color="red")

    summary = process_batch(tmp_path, REPLACE)

    assert summary.attempted == 1
    assert summary.succeeded == 1
    assert [p.name for p in tmp_path.iterdir()] == ["c.gif"]
    with Image.open(tmp_path / "c.gif") as img:
        assert img.format == "GIF"
        assert img.size == (800, 600)


def test_empty_folder_reports_no_eligible_files(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("hello")
    events: list[ProgressEvent] = []

    summary = process_batch(tmp_path, COPY, progress_callback=events.append)

    assert summary.status == "no-eligible-files"
    assert summary.eligible == 0
    assert summary.attempted == 0
    assert events == []


def test_all_failed_is_distinct_from_empty_and_completed(tmp_path: Path) -> None:
    (tmp_path / "bad.png").write_text("not an image")

    summary = process_batch(tmp_path, COPY)

    assert summary.status == "failed"
    assert summary.attempted == 1
    assert summary.succeeded == 0


def test_invalid_config_fails_before_enumeration(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _must_not_scan(folder: Path) -> list[Path]:
        raise AssertionError("folder scanned")

    monkeypatch.setattr("batch_resizer.processing.pipeline.collect_source_images", _must_not_scan)

    with pytest.raises(ConfigError):
        process_batch(tmp_path, ResizeConfig(target_width=0, target_height=600))


def test_missing_folder_raises_folder_error(tmp_path: Path) -> None:
    with pytest.raises(FolderError):
        process_batch(tmp_path / "missing", COPY)
    assert units.get_ruler_units() == "px"


def test_corrupt_file_does_not_stop_batch(tmp_path: Path) -> None:
    names = ["file1.png", "file2.png", "file3.png", "file4.png", "file5.png"]
    for name in names:
        _save(tmp_path / name)
    (tmp_path / "file3.png").write_bytes(b"\x89PNG corrupted")
    events: list[ProgressEvent] = []

    summary = process_batch(tmp_path, COPY, progress_callback=events.append)

    assert summary.attempted == 5
    assert summary.succeeded == 4
    assert summary.attempted == summary.succeeded + len(summary.failures)
    assert summary.status == "partial"
    assert len(summary.failures) == 1
    file_name, message = summary.failures[0]
    assert file_name == "file3.png"
    assert "file3.png" in message
    assert summary.outcomes[2].status == "error-decode"
    assert (tmp_path / "file4_resized.png").exists()
    assert (tmp_path / "file5_resized.png").exists()
    assert [e.current_index for e in events] == [1, 2, 3, 4, 5]


def test_progress_events_precede_each_file(tmp_path: Path) -> None:
    _save(tmp_path / "B.PNG")
    _save(tmp_path / "a.jpg")
    seen: list[tuple[ProgressEvent, bool]] = []

    def callback(event: ProgressEvent) -> None:
        output = tmp_path / event.current_file_name
        resized = output.with_name(output.stem + "_resized" + output.suffix.lower())
        seen.append((event, resized.exists()))

    process_batch(tmp_path, COPY, progress_callback=callback)

    assert [event for event, _ in seen] == [ProgressEvent(1, 2, "a.jpg"), ProgressEvent(2, 2, "B.PNG")]
    assert not any(exists for _, exists in seen)
    assert (tmp_path / "B_resized.png").exists()


def test_copy_collision_is_an_encode_failure(tmp_path: Path) -> None:
    _save(tmp_path / "a.png")
    (tmp_path / "a_resized.png").write_bytes(b"existing")

    summary = process_batch(tmp_path, COPY)

    # a_resized.png 本身也会被处理
    assert summary.attempted == 2
    outcome = summary.outcomes[0]
    assert outcome.source_path.name == "a.png"
    assert outcome.status == "error-encode"
    assert (tmp_path / "a_resized.png").read_bytes() == b"existing"


def test_file_set_is_fixed_at_start(tmp_path: Path) -> None:
    _save(tmp_path / "a.png")
    _save(tmp_path / "b.png")
    _save(tmp_path / "c.png")

    def callback(event: ProgressEvent) -> None:
        if event.current_index == 1:
            (tmp_path / "b.png").unlink()
            _save(tmp_path / "z.png")

    summary = process_batch(tmp_path, COPY, progress_callback=callback)

    assert summary.eligible == 3
    assert [o.source_path.name for o in summary.outcomes] == ["a.png", "b.png", "c.png"]
    assert summary.outcomes[1].status == "error-decode"
    assert not (tmp_path / "z_resized.png").exists()


def test_unexpected_error_is_isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _save(tmp_path / "a.png")
    _save(tmp_path / "b.png")
    original = worker.resize_document

    def flaky_resize(document: ImageDocument, width: int, height: int) -> ImageDocument:
        if document.source_path.name == "a.png":
            raise RuntimeError("backend exploded")
        return original(document, width, height)

    monkeypatch.setattr(worker, "resize_document", flaky_resize)

    summary = process_batch(tmp_path, COPY)

    assert summary.outcomes[0].status == "error-unexpected"
    assert "backend exploded" in summary.outcomes[0].message
    assert summary.outcomes[1].ok


def test_cleanup_failure_is_swallowed(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _save(tmp_path / "a.png")

    def broken_close(self: ImageDocument) -> None:
        raise OSError("handle already gone")

    monkeypatch.setattr(ImageDocument, "close", broken_close)

    summary = process_batch(tmp_path, COPY)

    assert summary.status == "completed"
    assert (tmp_path / "a_resized.png").exists()


def test_documents_released_after_each_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _save(tmp_path / "a.png")
    (tmp_path / "b.png").write_text("broken")
    created: list[ImageDocument] = []
    original = worker.resize_document

    def tracking_resize(document: ImageDocument, width: int, height: int) -> ImageDocument:
        created.append(document)
        resized = original(document, width, height)
        created.append(resized)
        return resized

    monkeypatch.setattr(worker, "resize_document", tracking_resize)

    process_batch(tmp_path, COPY)

    assert len(created) == 2
    assert all(document.released for document in created)


def test_ruler_units_restored_after_batch(tmp_path: Path) -> None:
    _save(tmp_path / "a.png")
    units.set_ruler_units("cm")
    seen_units: list[str] = []
    try:
        summary = process_batch(tmp_path, COPY, progress_callback=lambda e: seen_units.append(units.get_ruler_units()))
        assert units.get_ruler_units() == "cm"
    finally:
        units.set_ruler_units("px")

    assert seen_units == ["px"]
    with Image.open(summary.outcomes[0].output_path) as img:
        assert img.size == (800, 600)


def test_ruler_units_restored_when_sink_raises(tmp_path: Path) -> None:
    _save(tmp_path / "a.png")
    units.set_ruler_units("mm")

    def failing_sink(event: ProgressEvent) -> None:
        raise RuntimeError("sink closed")

    try:
        with pytest.raises(RuntimeError):
            process_batch(tmp_path, COPY, progress_callback=failing_sink)
        assert units.get_ruler_units() == "mm"
    finally:
        units.set_ruler_units("px")


def test_cancel_is_honoured_at_file_boundary(tmp_path: Path) -> None:
    for name in ("a.png", "b.png", "c.png"):
        _save(tmp_path / name)
    cancel = threading.Event()

    def callback(event: ProgressEvent) -> None:
        if event.current_index == 2:
            cancel.set()

    summary = BatchRunner(progress_callback=callback, cancel_event=cancel).run(tmp_path, COPY)

    assert summary.cancelled
    assert summary.status == "cancelled"
    assert summary.eligible == 3
    assert summary.attempted == 2
    assert (tmp_path / "b_resized.png").exists()
    assert not (tmp_path / "c_resized.png").exists()


def test_csv_report_lists_every_outcome(tmp_path: Path) -> None:
    source = tmp_path / "input"
    source.mkdir()
    _save(source / "good.png")
    (source / "bad.jpg").write_text("nope")

    summary = process_batch(source, COPY)
    report = write_csv_report(summary.outcomes, tmp_path / "out" / "report.csv")

    with report.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))

    assert [row["status"] for row in rows] == ["error-decode", "processed"]
    assert rows[0]["output_path"] == ""
    assert "bad.jpg" in rows[0]["message"]
    assert rows[1]["output_path"].endswith("good_resized.png")


def test_default_sink_logs_progress(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    _save(tmp_path / "a.png")

    with caplog.at_level(logging.INFO, logger="batch_resizer.core.progress"):
        process_batch(tmp_path, COPY)

    assert "[1/1]" in caplog.text
    assert "a.png" in caplog.text


def test_replace_mode_writes_through_symlink(tmp_path: Path) -> None:
    store = tmp_path / "store"
    work = tmp_path / "work"
    store.mkdir()
    work.mkdir()
    real = _save(store / "c.png", size=(20, 20))
    link = work / "c.png"
    try:
        link.symlink_to(real)
    except (OSError, NotImplementedError):
        pytest.skip("当前平台不支持创建符号链接")

    summary = process_batch(work, ResizeConfig(target_width=50, target_height=40, mode=ResizeMode.REPLACE))

    assert summary.status == "completed"
    assert link.is_symlink()
    with Image.open(real) as img:
        assert img.size == (50, 40)
    assert sorted(p.name for p in store.iterdir()) == ["c.png"]
