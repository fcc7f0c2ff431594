"""二维码生成工具。"""

import base64
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_M

# 二维码内容长度上限，超过后扫码识别率明显下降。
MAX_QR_CONTENT_LENGTH = 2000


def validate_qr_content(content: str) -> bool:
    """内容非空且不超过长度上限。"""
    return bool(content) and len(content) <= MAX_QR_CONTENT_LENGTH


def generate_qr_png(content: str, *, box_size: int = 10, border: int = 1) -> bytes:
    """生成黑白 PNG 二维码，纠错等级 M。"""
    if not validate_qr_content(content):
        raise ValueError("QR content must be 1..%d characters" % MAX_QR_CONTENT_LENGTH)
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(content)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def generate_qr_data_url(content: str) -> str:
    """生成 data:image/png;base64 形式的二维码，供前端直接展示。"""
    encoded = base64.b64encode(generate_qr_png(content)).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def verification_url(base_url: str, qr_hash: str) -> str:
    """拼接公文验证链接。"""
    return f"{base_url.rstrip('/')}/{qr_hash}"
