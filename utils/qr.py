import io
import qrcode
from qrcode.constants import ERROR_CORRECT_M


def qr_png_bytes(text: str, box_size: int = 10, border: int = 2) -> bytes:
    """PNG of a QR code for 'text', medium error correction."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(text)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def print_terminal_qr(text: str, out=None) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(text)
    qr.make(fit=True)
    qr.print_ascii(out=out, invert=True)
