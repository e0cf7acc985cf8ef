"""项目内使用的自定义异常定义。"""


class ImageUploaderError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ImageUploaderError):
    """配置不合法时抛出。"""


class EncodeError(ImageUploaderError):
    """缩放或编码某个尺寸档位失败。"""


class SinkError(ImageUploaderError):
    """输出目标（本地目录或 FTP）写入失败的基类。"""


class ContainerCreationError(SinkError):
    """无法创建输出目录。"""


class UploadFailed(SinkError):
    """单个文件写入或上传失败。"""


class NotConnectedError(SinkError):
    """无法建立 FTP 会话。"""


class ConnectionLostError(SinkError):
    """批处理过程中连接中断，整个任务需要终止。"""


class ProcessingAborted(ImageUploaderError):
    """任务被用户中断时抛出。"""
