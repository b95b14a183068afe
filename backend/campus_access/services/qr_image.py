"""QR code image rendering for passes."""
import base64
import io

import qrcode

STANDARD_COLOR = "black"
TEMPORARY_COLOR = "#FF6B35"

def render_data_url(qr_string: str, fill_color: str = STANDARD_COLOR) -> str:
    """Render a QR string as a base64 PNG data URL."""
    qr = qrcode.QRCode(
        version=None,  # Auto-determine size
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=1,
    )
    qr.add_data(qr_string)
    qr.make(fit=True)

    img = qr.make_image(fill_color=fill_color, back_color="white")

    buffered = io.BytesIO()
    img.save(buffered, format="PNG")
    img_str = base64.b64encode(buffered.getvalue()).decode()

    return f"data:image/png;base64,{img_str}"
