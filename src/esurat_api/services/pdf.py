"""PDF 盖章、合并与元信息读取。

盖章坐标约定：x_percent / y_percent 为图章中心点相对页面宽高的比例，
y 方向从页面顶部向下计算；图章为 size x size 的正方形（单位 pt）。
PDF 坐标原点在左下角，因此落点为：

    x = x_percent * width - size / 2
    y = height - y_percent * height - size / 2
"""

import base64
import binascii
from dataclasses import dataclass, field
from io import BytesIO
import logging

from PyPDF2 import PdfReader, PdfWriter
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as rl_canvas

from esurat_api.models.enums import StampType
from esurat_api.services.qr import generate_qr_png

logger = logging.getLogger(__name__)

# 二维码外框：距图片 2pt，浅灰 0.5pt 线宽。
QR_BORDER_GAP = 2
QR_BORDER_WIDTH = 0.5
QR_BORDER_COLOR = colors.Color(0.8, 0.8, 0.8)


@dataclass
class StampConfig:
    """单个图章描述。"""

    # 页码，从 1 开始。
    page: int
    x_percent: float
    y_percent: float
    size: float
    type: StampType
    # QR: 待编码文本；IMAGE: base64 PNG，可带 data:image/png;base64, 前缀。
    data: str


@dataclass
class StampPlacement:
    """图章实际落点（PDF 坐标系，左下角为原点）。"""

    page: int
    x: float
    y: float
    size: float
    type: StampType


@dataclass
class StampResult:
    pdf_bytes: bytes
    qr_hash: str
    placements: list[StampPlacement] = field(default_factory=list)


def compute_stamp_box(
    page_width: float,
    page_height: float,
    x_percent: float,
    y_percent: float,
    size: float,
) -> tuple[float, float]:
    """返回图章左下角坐标。"""
    x = x_percent * page_width - size / 2
    y = page_height - y_percent * page_height - size / 2
    return x, y


def decode_image_data(data: str) -> bytes:
    """解码 base64 图片，兼容 data URL 前缀。"""
    payload = data.split(",", 1)[1] if data.startswith("data:") and "," in data else data
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("invalid base64 image data") from exc


def _stamp_image_bytes(stamp: StampConfig) -> bytes:
    if stamp.type == StampType.QR:
        return generate_qr_png(stamp.data)
    return decode_image_data(stamp.data)


def _page_dimensions(page) -> tuple[float, float]:
    box = page.mediabox
    return float(box.width), float(box.height)


def _build_overlay(
    stamps: list[StampConfig],
    page_number: int,
    page_width: float,
    page_height: float,
) -> tuple[PdfReader, list[StampPlacement]]:
    """为单页生成只含图章的覆盖层。"""
    packet = BytesIO()
    can = rl_canvas.Canvas(packet, pagesize=(page_width, page_height))
    placements: list[StampPlacement] = []

    for stamp in stamps:
        x, y = compute_stamp_box(page_width, page_height, stamp.x_percent, stamp.y_percent, stamp.size)
        image = ImageReader(BytesIO(_stamp_image_bytes(stamp)))
        can.drawImage(image, x, y, width=stamp.size, height=stamp.size, mask="auto")
        if stamp.type == StampType.QR:
            can.setStrokeColor(QR_BORDER_COLOR)
            can.setLineWidth(QR_BORDER_WIDTH)
            can.rect(
                x - QR_BORDER_GAP,
                y - QR_BORDER_GAP,
                stamp.size + QR_BORDER_GAP * 2,
                stamp.size + QR_BORDER_GAP * 2,
                stroke=1,
                fill=0,
            )
        placements.append(StampPlacement(page=page_number, x=x, y=y, size=stamp.size, type=stamp.type))

    can.save()
    packet.seek(0)
    return PdfReader(packet), placements


def stamp_document(pdf_bytes: bytes, qr_hash: str, stamps: list[StampConfig]) -> StampResult:
    """在 PDF 上叠加二维码或签名图片。

    页码越界的图章直接跳过；没有任何图章落到页面上时原样返回输入字节。
    """
    reader = PdfReader(BytesIO(pdf_bytes))
    page_count = len(reader.pages)

    by_page: dict[int, list[StampConfig]] = {}
    for stamp in stamps:
        if stamp.page < 1 or stamp.page > page_count:
            logger.warning("skip stamp on page %s, document has %s pages", stamp.page, page_count)
            continue
        by_page.setdefault(stamp.page, []).append(stamp)

    if not by_page:
        return StampResult(pdf_bytes=pdf_bytes, qr_hash=qr_hash)

    writer = PdfWriter()
    placements: list[StampPlacement] = []
    for index, page in enumerate(reader.pages):
        page_number = index + 1
        page_stamps = by_page.get(page_number)
        if page_stamps:
            width, height = _page_dimensions(page)
            overlay, page_placements = _build_overlay(page_stamps, page_number, width, height)
            page.merge_page(overlay.pages[0])
            placements.extend(page_placements)
        writer.add_page(page)

    output = BytesIO()
    writer.write(output)
    return StampResult(pdf_bytes=output.getvalue(), qr_hash=qr_hash, placements=placements)


def merge_pdfs(front: bytes, back: bytes) -> bytes | None:
    """按 front 全部页、back 全部页的顺序合并；任一文档无法读取时返回 None。"""
    try:
        writer = PdfWriter()
        for source in (front, back):
            for page in PdfReader(BytesIO(source)).pages:
                writer.add_page(page)
        output = BytesIO()
        writer.write(output)
        return output.getvalue()
    except Exception:
        logger.exception("failed to merge pdf documents")
        return None


def get_pdf_page_count(pdf_bytes: bytes) -> int:
    return len(PdfReader(BytesIO(pdf_bytes)).pages)


def get_pdf_page_size(pdf_bytes: bytes, page_number: int = 1) -> tuple[float, float]:
    """返回指定页（从 1 开始）的宽高，页码不存在时抛出 ValueError。"""
    reader = PdfReader(BytesIO(pdf_bytes))
    if page_number < 1 or page_number > len(reader.pages):
        raise ValueError(f"Invalid page number: {page_number}")
    return _page_dimensions(reader.pages[page_number - 1])


def is_valid_pdf(pdf_bytes: bytes) -> bool:
    try:
        return len(PdfReader(BytesIO(pdf_bytes)).pages) > 0
    except Exception:
        return False


def get_pdf_metadata(pdf_bytes: bytes) -> dict[str, object]:
    """读取页数与文档信息字段。"""
    reader = PdfReader(BytesIO(pdf_bytes))
    info = reader.metadata
    return {
        "page_count": len(reader.pages),
        "title": info.title if info else None,
        "author": info.author if info else None,
        "subject": info.subject if info else None,
        "creator": info.creator if info else None,
        "producer": info.producer if info else None,
    }
