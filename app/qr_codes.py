import base64
import io
import qrcode
from PIL import Image


def make_qr_image(data: str, box_size: int = 8, border: int = 2) -> Image.Image:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    return qr.make_image(fill_color="black", back_color="white").convert("RGB")


def make_qr_data_url(data: str) -> str:
    """PNG QR code as a data:image/png;base64 URL"""
    buf = io.BytesIO()
    make_qr_image(data).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
