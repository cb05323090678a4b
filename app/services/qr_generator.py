"""QR codes printed on and shown with a customer's loyalty card."""
import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_Q

CARD_QR_BOX_SIZE = 8
CARD_QR_BORDER = 4


def render_card_qr(card_url: str, box_size: int = CARD_QR_BOX_SIZE, border: int = CARD_QR_BORDER) -> bytes:
    """Render `card_url` as a black-on-white PNG and return the file bytes."""
    image = qrcode.make(
        card_url,
        error_correction=ERROR_CORRECT_Q,
        box_size=box_size,
        border=border,
    )
    png = io.BytesIO()
    image.save(png, format="PNG")
    return png.getvalue()


def card_qr_data_url(card_url: str) -> str:
    """The card QR code as a `data:image/png;base64,...` URL for <img> tags."""
    encoded = base64.b64encode(render_card_qr(card_url)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
