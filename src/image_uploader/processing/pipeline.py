"""处理流水线：扫描、逐个文件生成多尺寸版本并写入输出目标。"""

from __future__ import annotations

import ftplib
import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Sequence

from image_uploader.core.config import (
    BULK_POLICY,
    PREVIEW_POLICY,
    SUPPORTED_EXTENSIONS,
    FilesystemTarget,
    JobConfig,
    OutputTarget,
    RemoteTarget,
    RenditionPolicy,
)
from image_uploader.core.exceptions import (
    ConnectionLostError,
    InvalidConfigurationError,
    NotConnectedError,
    ProcessingAborted,
    SinkError,
)
from image_uploader.core.models import BatchResult, FileOutcome, SourceImage
from image_uploader.core.progress import BatchProgress
from image_uploader.core.report import write_csv_report
from image_uploader.core.scanner import collect_source_images
from image_uploader.processing.worker import process_source
from image_uploader.sinks.base import OutputSink
from image_uploader.sinks.filesystem import FilesystemSink
from image_uploader.sinks.ftp import FtpFactory, FtpSink

LOGGER = logging.getLogger(__name__)


ProgressCallback = Optional[Callable[[BatchProgress], None]]


def create_sink(target: OutputTarget, ftp_factory: FtpFactory = ftplib.FTP) -> OutputSink:
    """根据输出目标类型创建对应的 Sink，每次任务只决定一次。"""

    if isinstance(target, FilesystemTarget):
        return FilesystemSink(target.output_dir)
    if isinstance(target, RemoteTarget):
        return FtpSink(target.endpoint, ftp_factory=ftp_factory)
    raise InvalidConfigurationError(f"未知的输出目标: {target!r}")


def run_batch(
    input_folder: Path,
    sink: OutputSink,
    supported_extensions: Sequence[str] = SUPPORTED_EXTENSIONS,
    progress_callback: ProgressCallback = None,
    *,
    policy: RenditionPolicy = BULK_POLICY,
    cancel_event: Optional[threading.Event] = None,
) -> BatchResult:
    """批量处理入口：逐个文件生成所有档位并写入 ``sink``。

    输入错误（目录不存在、没有匹配文件）以结果值返回而不抛出异常；
    单个文件的失败只计入统计，不影响后续文件；
    连接建立失败或中断会终止整个任务。无论如何，返回前都会释放 ``sink`` 持有的资源。
    """

    result = BatchResult()

    if not input_folder.is_dir():
        LOGGER.error("输入目录不存在: %s", input_folder)
        result.error_messages.append(f"输入目录不存在: {input_folder}")
        return result

    LOGGER.info("开始扫描输入目录 %s", input_folder)
    sources = collect_source_images(input_folder, supported_extensions)
    result.total_files = len(sources)
    LOGGER.info("发现 %d 个候选图片文件", result.total_files)

    if not sources:
        result.error_messages.append("所选目录中没有受支持的图片文件")
        return result

    try:
        with sink:
            try:
                sink.ensure_container("")
            except ConnectionLostError:
                raise
            except SinkError as exc:
                LOGGER.error("无法准备输出目录 %s: %s", sink.describe(), exc)
                result.error_messages.append(f"无法准备输出目录: {exc}")
                return result

            _process_sources(sources, sink, policy, result, progress_callback, cancel_event)
    except NotConnectedError as exc:
        LOGGER.error("无法连接输出目标 %s: %s", sink.describe(), exc)
        result.error_messages.append(f"连接失败: {exc}")
    except ConnectionLostError as exc:
        LOGGER.error("连接中断，任务终止: %s", exc)
        result.error_messages.append(f"连接中断，任务终止: {exc}")

    LOGGER.info(
        "处理结束：共 %d 个，成功 %d 个，失败 %d 个",
        result.total_files,
        result.processed_files,
        result.failed_files,
    )
    return result


def _process_sources(
    sources: Sequence[SourceImage],
    sink: OutputSink,
    policy: RenditionPolicy,
    result: BatchResult,
    progress_callback: ProgressCallback,
    cancel_event: Optional[threading.Event],
) -> None:
    total = len(sources)
    for index, source in enumerate(sources, start=1):
        if cancel_event is not None and cancel_event.is_set():
            _mark_cancelled(result)
            return

        _emit_progress(progress_callback, index, total, source.file_name)
        LOGGER.info("[%d/%d] 处理 %s", index, total, source.file_name)

        try:
            outcome = process_source(source, sink, policy, cancel_event)
        except ProcessingAborted as exc:
            result.record(FileOutcome(source_path=source.source_path, status="cancelled", message=str(exc)))
            _mark_cancelled(result)
            return
        except ConnectionLostError as exc:
            result.record(FileOutcome(source_path=source.source_path, status="error-connection", message=str(exc)))
            raise

        result.record(outcome)


def _mark_cancelled(result: BatchResult) -> None:
    LOGGER.warning("任务已被取消")
    result.cancelled = True


def _emit_progress(callback: ProgressCallback, current: int, total: int, file_name: str) -> None:
    if not callback:
        return
    callback(BatchProgress(current_index=current, total_count=total, current_file_name=file_name))


def process_batch(
    config: JobConfig,
    progress_callback: ProgressCallback = None,
    *,
    cancel_event: Optional[threading.Event] = None,
    ftp_factory: FtpFactory = ftplib.FTP,
) -> BatchResult:
    """根据任务配置创建输出目标并执行批处理。"""

    sink = create_sink(config.target, ftp_factory=ftp_factory)
    LOGGER.info("输出目标: %s", sink.describe())
    result = run_batch(
        config.input_folder,
        sink,
        config.supported_extensions,
        progress_callback,
        policy=config.policy,
        cancel_event=cancel_event,
    )

    if config.report_filename and isinstance(config.target, FilesystemTarget) and result.outcomes:
        _write_report(config.target.output_dir, config.report_filename, result)
    return result


def _write_report(output_dir: Path, filename: str, result: BatchResult) -> None:
    try:
        write_csv_report(result.outcomes, output_dir, filename)
    except OSError as exc:
        LOGGER.error("写入报告失败：%s", exc)


def save_single_image(image_path: Path, output_dir: Path, label: str = "") -> FileOutcome:
    """单张图片保存路径：按预览档位生成 JPEG，输出到 ``<档位>/`` 子目录。"""

    with FilesystemSink(output_dir) as sink:
        return process_source(SourceImage(source_path=image_path), sink, PREVIEW_POLICY, label=label)
