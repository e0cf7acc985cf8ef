"""处理任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from image_uploader.core.exceptions import InvalidConfigurationError

SUPPORTED_EXTENSIONS: Tuple[str, ...] = (".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tiff", ".webp")

DEFAULT_FTP_PORT = 21
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class ImageTier:
    """单个输出尺寸档位。"""

    name: str
    max_dimension: int
    suffix: str = ""


@dataclass(frozen=True, slots=True)
class RenditionPolicy:
    """一组尺寸档位及其编码方式。

    ``layout`` 决定输出的相对路径结构：
    ``per-image`` -> ``<base>/<base>_<tier>.<ext>``；
    ``per-tier`` -> ``<tier>/<base>_<label>_<suffix>.<ext>``。
    ``bound`` 为 ``longest`` 时限制最长边，为 ``width`` 时只限制宽度。
    """

    name: str
    tiers: Tuple[ImageTier, ...]
    image_format: str
    extension: str
    fixed_quality: Optional[int] = None
    layout: str = "per-image"
    bound: str = "longest"


# 批量压缩 / FTP 上传使用的档位。
BULK_POLICY = RenditionPolicy(
    name="bulk",
    tiers=(
        ImageTier("small", 800),
        ImageTier("medium", 1200),
        ImageTier("large", 1920),
    ),
    image_format="WEBP",
    extension="webp",
)

# 单张图片保存路径使用的档位，与批量档位保持独立。
PREVIEW_POLICY = RenditionPolicy(
    name="preview",
    tiers=(
        ImageTier("large", 1024, "L"),
        ImageTier("medium", 512, "M"),
        ImageTier("small", 256, "S"),
    ),
    image_format="JPEG",
    extension="jpg",
    fixed_quality=85,
    layout="per-tier",
    bound="width",
)


def normalize_remote_path(path: Optional[str]) -> str:
    """规范化远程路径：以 / 开头，除根目录外不以 / 结尾。"""

    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


@dataclass(slots=True)
class FtpTimeouts:
    """FTP 连接超时设置（秒）。"""

    connect: float = DEFAULT_TIMEOUT_SECONDS
    read: float = DEFAULT_TIMEOUT_SECONDS
    data_connect: float = DEFAULT_TIMEOUT_SECONDS
    data_read: float = DEFAULT_TIMEOUT_SECONDS

    def socket_timeout(self) -> float:
        """ftplib 对控制连接与数据连接共用一个超时值，取最大者。"""

        return max(self.connect, self.read, self.data_connect, self.data_read)


@dataclass(slots=True)
class RemoteEndpoint:
    """远程 FTP 服务器配置。"""

    host: str
    port: int = DEFAULT_FTP_PORT
    username: str = ""
    password: str = field(default="", repr=False)
    remote_base_path: str = "/"
    timeouts: FtpTimeouts = field(default_factory=FtpTimeouts)

    def __post_init__(self) -> None:
        self.host = (self.host or "").strip()
        if not self.host:
            raise InvalidConfigurationError("FTP 服务器地址不能为空")
        if not 0 < self.port < 65536:
            raise InvalidConfigurationError(f"无效的端口号: {self.port}")
        self.remote_base_path = normalize_remote_path(self.remote_base_path)


@dataclass(slots=True)
class FilesystemTarget:
    """输出到本地目录。"""

    output_dir: Path


@dataclass(slots=True)
class RemoteTarget:
    """上传到 FTP 服务器。"""

    endpoint: RemoteEndpoint


OutputTarget = Union[FilesystemTarget, RemoteTarget]


@dataclass(slots=True)
class JobConfig:
    """单次批处理任务的配置集合。"""

    input_folder: Path
    target: OutputTarget
    supported_extensions: Sequence[str] = SUPPORTED_EXTENSIONS
    policy: RenditionPolicy = BULK_POLICY
    report_filename: Optional[str] = None
