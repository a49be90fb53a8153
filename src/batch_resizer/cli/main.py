"""命令行入口。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from batch_resizer.core.config import ResizeConfig, ResizeMode
from batch_resizer.core.exceptions import ConfigError, FolderError
from batch_resizer.core.models import (
    SUMMARY_CANCELLED,
    SUMMARY_COMPLETED,
    SUMMARY_FAILED,
    SUMMARY_NO_ELIGIBLE_FILES,
    BatchSummary,
)
from batch_resizer.core.progress import ProgressEvent
from batch_resizer.core.report import write_csv_report
from batch_resizer.core.scanner import SUPPORTED_EXTENSIONS
from batch_resizer.processing.pipeline import process_batch
from batch_resizer.utils.logging import setup_logging

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help="批量将文件夹中的图片缩放到指定分辨率。")


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(event: ProgressEvent) -> None:
        nonlocal task_id
        if task_id is None:
            task_id = progress.add_task("处理图片", total=event.total_count)
        progress.update(
            task_id,
            completed=event.current_index - 1,
            description=f"处理 {event.current_file_name}",
        )

    return callback


def _summary_line(summary: BatchSummary) -> str:
    status = summary.status
    if status == SUMMARY_NO_ELIGIBLE_FILES:
        return "所选文件夹中没有支持的图片文件。"
    if status == SUMMARY_FAILED:
        return f"处理完成：全部 {summary.attempted} 个文件均失败。"
    if status == SUMMARY_COMPLETED:
        return f"处理完成：成功 {summary.succeeded} 个文件。"
    prefix = "任务已取消" if status == SUMMARY_CANCELLED else "处理完成"
    return (
        f"{prefix}：成功 {summary.succeeded} 个，失败 {len(summary.failures)} 个，"
        f"共尝试 {summary.attempted}/{summary.eligible} 个。"
    )


@app.command("run")
def run_cli(
    folder: Path = typer.Argument(..., help="包含待缩放图片的文件夹（不递归）"),
    width: str = typer.Option("800", "--width", "-W", help="目标宽度（像素）"),
    height: str = typer.Option("600", "--height", "-H", help="目标高度（像素）"),
    mode: str = typer.Option(
        ResizeMode.COPY.value, "--mode", "-m", help="copy 生成 *_resized 副本，replace 覆盖原文件"
    ),
    report: Optional[Path] = typer.Option(None, "--report", help="写出 CSV 处理报告"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """执行批量缩放。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)

    try:
        config = ResizeConfig.parse(width, height, mode)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
    )

    try:
        with progress:
            summary = process_batch(folder.expanduser(), config, progress_callback=_build_progress_callback(progress))
            for task in progress.tasks:
                progress.update(task.id, completed=summary.attempted)
    except FolderError as exc:
        typer.echo(f"错误：{exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(_summary_line(summary))
    for _file_name, message in summary.failures:
        typer.echo(f"  - {message}")

    if report is not None:
        try:
            report_path = write_csv_report(summary.outcomes, report.expanduser())
        except OSError as exc:
            LOGGER.error("写入报告失败：%s", exc)
        else:
            typer.echo(f"报告文件：{report_path}")


@app.command("formats")
def formats_cli() -> None:
    """列出支持的图片扩展名。"""

    typer.echo(" ".join(sorted(ext.lstrip(".") for ext in SUPPORTED_EXTENSIONS)))


if __name__ == "__main__":
    app()
