import base64
from io import BytesIO

import qrcode


def generate_qr_code(data):
    """
    Generates a QR code PNG for the given data.
    Returns the raw PNG bytes.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def qr_code_data_uri(data):
    encoded = base64.b64encode(generate_qr_code(data)).decode('ascii')
    return f"data:image/png;base64,{encoded}"
