"""上传文件存储服务（本地文件系统实现）。

文件按用途分区存放在 `upload_root` 下，对外统一通过
`{api_prefix}/uploads/<area>/<filename>` 访问。
"""

from dataclasses import dataclass
from enum import StrEnum
import logging
from pathlib import Path
from uuid import uuid4

from esurat_api.core.config import get_settings

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
DOC_CONTENT_TYPES = {
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

_CONTENT_TYPE_BY_SUFFIX = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


class UploadArea(StrEnum):
    """上传分区。"""

    DRAFTS = "drafts"  # 创建时上传的草稿。
    STAMPED = "stamped"  # 审批盖章后的版本。
    SIGNED = "signed"  # 签署后的最终版本。
    TEMPLATES = "templates"  # 公文模板。
    DISPOSITION_DRAFTS = "dispositions/drafts"  # 系统生成的批示单。


class UploadRejected(ValueError):
    """上传文件未通过校验。"""

    def __init__(self, message: str, *, too_large: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.too_large = too_large


class UnsafePathError(ValueError):
    """请求路径解析到上传根目录之外。"""


@dataclass
class StoredFile:
    """落盘结果。"""

    filename: str
    path: Path
    public_url: str


def upload_root() -> Path:
    return Path(get_settings().upload_root).resolve()


def public_prefix() -> str:
    return f"{get_settings().api_prefix.rstrip('/')}/uploads/"


def format_file_size(size: int) -> str:
    """将字节数格式化为可读文本，例如 10 MB。"""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"


def validate_upload(
    *,
    filename: str | None,
    content_type: str | None,
    size: int,
    max_size: int | None = None,
    allow_documents: bool = False,
) -> None:
    """校验上传文件大小与类型，失败抛出 UploadRejected。"""
    limit = max_size or get_settings().upload_max_size
    if size <= 0:
        raise UploadRejected("File harus diunggah")
    if size > limit:
        raise UploadRejected(f"Ukuran file terlalu besar. Maksimum {format_file_size(limit)}", too_large=True)

    suffix = Path(filename or "").suffix.lower()
    allowed_types = {PDF_CONTENT_TYPE}
    allowed_suffixes = {".pdf"}
    if allow_documents:
        allowed_types |= DOC_CONTENT_TYPES
        allowed_suffixes |= {".doc", ".docx"}

    if content_type not in allowed_types and suffix not in allowed_suffixes:
        readable = ", ".join(sorted(allowed_suffixes))
        raise UploadRejected(f"Tipe file tidak didukung. Hanya {readable} yang diperbolehkan")


def _area_dir(area: UploadArea) -> Path:
    target = upload_root().joinpath(*area.value.split("/"))
    target.mkdir(parents=True, exist_ok=True)
    return target


def save_buffer(content: bytes, area: UploadArea, filename: str) -> StoredFile:
    """按指定文件名写入分区。"""
    # 仅保留文件名部分。
    safe_name = Path(filename).name or f"{uuid4()}.bin"
    target = _area_dir(area) / safe_name
    target.write_bytes(content)
    return StoredFile(filename=safe_name, path=target, public_url=f"{public_prefix()}{area.value}/{safe_name}")


def save_upload(content: bytes, area: UploadArea, original_filename: str | None) -> StoredFile:
    """以随机文件名保存上传内容，保留原扩展名。"""
    suffix = Path(original_filename or "").suffix.lower() or ".pdf"
    return save_buffer(content, area, f"{uuid4()}{suffix}")


def resolve_upload_path(relative: str) -> Path:
    """将相对路径解析到上传根目录下，越界时抛出 UnsafePathError。"""
    root = upload_root()
    candidate = root.joinpath(relative).resolve()
    if candidate != root and not candidate.is_relative_to(root):
        raise UnsafePathError(relative)
    return candidate


def path_for_public_url(public_url: str) -> Path:
    """将对外访问路径映射回磁盘路径。"""
    prefix = public_prefix()
    relative = public_url[len(prefix):] if public_url.startswith(prefix) else public_url.lstrip("/")
    return resolve_upload_path(relative)


def read_public_file(public_url: str) -> bytes:
    return path_for_public_url(public_url).read_bytes()


def delete_file(public_url: str | None) -> bool:
    """删除文件，不存在或失败时返回 False。"""
    if not public_url:
        return False
    try:
        target = path_for_public_url(public_url)
        if not target.is_file():
            return False
        target.unlink()
        return True
    except (OSError, UnsafePathError):
        logger.exception("failed to delete stored file %s", public_url)
        return False


def content_type_for(path: Path) -> str:
    """根据扩展名推断响应类型。"""
    return _CONTENT_TYPE_BY_SUFFIX.get(path.suffix.lower(), "application/octet-stream")
