"""
QR code generation service
"""

import io
import qrcode

from wedding_rsvp.core.config import settings

class QRService:
    """Service for generating QR codes of invitation links"""

    @staticmethod
    def invitation_url(token: str) -> str:
        """Public RSVP link for a raw invitation token"""
        return f"{settings.BASE_URL.rstrip('/')}/rsvp/{token}"

    @staticmethod
    def generate_link_qr(url: str, format: str = 'PNG') -> bytes:
        """Render a link as a QR code image, e.g. for printed invitations"""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(url)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format=format)

        return buffer.getvalue()
