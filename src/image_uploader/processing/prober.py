"""FTP 连接测试：在批处理前验证连通性、认证与写权限。"""

from __future__ import annotations

import ftplib
import logging
from typing import Optional

from image_uploader.core.config import RemoteEndpoint
from image_uploader.core.exceptions import ContainerCreationError, NotConnectedError, SinkError
from image_uploader.core.models import ProbeResult
from image_uploader.sinks.ftp import FtpFactory, FtpSession

LOGGER = logging.getLogger(__name__)


def probe(endpoint: RemoteEndpoint, ftp_factory: FtpFactory = ftplib.FTP) -> ProbeResult:
    """测试 FTP 配置，失败时返回 ``ok=False`` 而不是抛出异常。

    远程基础路径不存在时会尝试创建，以此验证写权限。
    返回前总会断开连接。
    """

    session: Optional[FtpSession] = None
    try:
        session = FtpSession.connect(endpoint, ftp_factory)
        current_dir = session.working_directory()

        base_path = endpoint.remote_base_path
        if base_path != "/" and not session.directory_exists(base_path):
            try:
                session.create_directory(base_path)
            except ContainerCreationError as exc:
                LOGGER.warning("无法创建远程目录 %s: %s", base_path, exc)
                return ProbeResult(
                    ok=False,
                    message="无法访问或创建远程目录",
                    detail=f"创建目录 '{base_path}' 失败: {exc}",
                )

        return ProbeResult(ok=True, message=f"连接成功！当前目录: {current_dir}")
    except NotConnectedError as exc:
        LOGGER.warning("FTP 连接失败: %s", exc)
        return ProbeResult(ok=False, message="无法连接到 FTP 服务器", detail=str(exc))
    except SinkError as exc:
        LOGGER.warning("FTP 连接测试失败: %s", exc)
        return ProbeResult(ok=False, message="连接测试失败", detail=str(exc))
    finally:
        if session is not None:
            session.disconnect()
