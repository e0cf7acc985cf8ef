"""命令行入口。"""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from image_uploader.core.config import (
    DEFAULT_FTP_PORT,
    SUPPORTED_EXTENSIONS,
    FilesystemTarget,
    JobConfig,
    OutputTarget,
    RemoteEndpoint,
    RemoteTarget,
)
from image_uploader.core.exceptions import InvalidConfigurationError
from image_uploader.core.models import BatchResult
from image_uploader.core.progress import BatchProgress
from image_uploader.core.report import format_summary
from image_uploader.processing.pipeline import process_batch, save_single_image
from image_uploader.processing.prober import probe
from image_uploader.utils.logging import setup_logging

app = typer.Typer(help="批量图片多尺寸压缩与 FTP 上传工具。")

PASSWORD_ENVVAR = "IMAGE_UPLOADER_FTP_PASSWORD"


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: BatchProgress) -> None:
        nonlocal task_id
        if update.total_count == 0:
            return
        if task_id is None:
            task_id = progress.add_task("处理图片", total=update.total_count)
        progress.update(task_id, completed=update.current_index - 1, description=update.current_file_name)

    return callback


def _complete_tasks(progress: Progress) -> None:
    """批处理结束后把进度条补满。"""

    for task in progress.tasks:
        if task.total is not None:
            progress.update(task.id, completed=task.total)


def _make_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
    )


@contextmanager
def _cancel_on_interrupt() -> Iterator[threading.Event]:
    """Ctrl-C 时设置取消标记，让当前文件结束后停止。"""

    event = threading.Event()

    def handler(signum, frame) -> None:  # noqa: ARG001
        if event.is_set():
            raise KeyboardInterrupt
        typer.echo("正在取消，当前文件处理完成后停止……", err=True)
        event.set()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield event
    finally:
        signal.signal(signal.SIGINT, previous)


def _build_endpoint(host: str, port: int, user: str, password: Optional[str], remote_path: str) -> RemoteEndpoint:
    if password is None:
        password = typer.prompt("FTP 密码", hide_input=True, default="", show_default=False)
    try:
        return RemoteEndpoint(
            host=host,
            port=port,
            username=user,
            password=password,
            remote_base_path=remote_path,
        )
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _run_job(
    input_folder: Path,
    target: OutputTarget,
    extensions: Optional[List[str]],
    report: Optional[str],
) -> BatchResult:
    job = JobConfig(
        input_folder=input_folder.expanduser().resolve(),
        target=target,
        supported_extensions=tuple(extensions) if extensions else SUPPORTED_EXTENSIONS,
        report_filename=report,
    )
    progress = _make_progress()
    with _cancel_on_interrupt() as cancel_event, progress:
        result = process_batch(job, progress_callback=_build_progress_callback(progress), cancel_event=cancel_event)
        if not result.cancelled:
            _complete_tasks(progress)
    return result


def _finish(result: BatchResult) -> None:
    typer.echo(format_summary(result))
    if not result.is_successful:
        raise typer.Exit(code=1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志")) -> None:
    """初始化日志。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)


@app.command("compress")
def compress_cli(
    input_folder: Path = typer.Argument(..., help="源图片目录（不递归）"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    extension: Optional[List[str]] = typer.Option(None, "--ext", help="仅处理指定扩展名，可指定多个"),
    report: Optional[str] = typer.Option(None, "--report", help="在输出目录写入 CSV 报告的文件名"),
) -> None:
    """压缩目录中的图片并写入本地目录。"""

    result = _run_job(input_folder, FilesystemTarget(output_dir=output.expanduser().resolve()), extension, report)
    _finish(result)


@app.command("upload")
def upload_cli(  # noqa: PLR0913
    input_folder: Path = typer.Argument(..., help="源图片目录（不递归）"),
    host: str = typer.Option(..., "--host", help="FTP 服务器地址"),
    port: int = typer.Option(DEFAULT_FTP_PORT, "--port", help="FTP 端口"),
    user: str = typer.Option("", "--user", "-u", help="用户名，留空为匿名登录"),
    password: Optional[str] = typer.Option(None, "--password", envvar=PASSWORD_ENVVAR, help="密码，未提供时交互输入"),
    remote_path: str = typer.Option("/", "--remote-path", help="远程基础目录"),
    extension: Optional[List[str]] = typer.Option(None, "--ext", help="仅处理指定扩展名，可指定多个"),
) -> None:
    """压缩目录中的图片并上传到 FTP 服务器。"""

    endpoint = _build_endpoint(host, port, user, password, remote_path)
    result = _run_job(input_folder, RemoteTarget(endpoint=endpoint), extension, None)
    _finish(result)


@app.command("probe")
def probe_cli(
    host: str = typer.Option(..., "--host", help="FTP 服务器地址"),
    port: int = typer.Option(DEFAULT_FTP_PORT, "--port", help="FTP 端口"),
    user: str = typer.Option("", "--user", "-u", help="用户名，留空为匿名登录"),
    password: Optional[str] = typer.Option(None, "--password", envvar=PASSWORD_ENVVAR, help="密码，未提供时交互输入"),
    remote_path: str = typer.Option("/", "--remote-path", help="远程基础目录"),
) -> None:
    """测试 FTP 连接、认证以及远程目录的写权限。"""

    result = probe(_build_endpoint(host, port, user, password, remote_path))
    typer.echo(result.message)
    if result.detail:
        typer.echo(result.detail)
    if not result.ok:
        raise typer.Exit(code=1)


@app.command("preview")
def preview_cli(
    image: Path = typer.Argument(..., help="单张源图片"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    label: str = typer.Option("", "--label", help="附加到文件名中的标签"),
) -> None:
    """为单张图片生成 large/medium/small 三个 JPEG 版本。"""

    outcome = save_single_image(image.expanduser().resolve(), output.expanduser().resolve(), label)
    if not outcome.succeeded:
        typer.echo(f"处理失败：{outcome.message}")
        raise typer.Exit(code=1)
    typer.echo(f"已生成 {outcome.renditions} 个文件：{output}")


if __name__ == "__main__":
    app()
