import logging
import re
import secrets
import string
from io import BytesIO
from urllib.parse import urlparse, parse_qs

import qrcode
import qrcode.image.pil
from django.conf import settings
from PIL import Image

logger = logging.getLogger(__name__)

TICKET_CODE_ALPHABET = string.ascii_letters + string.digits + "_-"
TICKET_CODE_RE = re.compile(r'^[A-Za-z0-9_-]{8,64}$')
QR_PREFIX = "TICKET_QR"


def generate_ticket_code(length=None):
    """Unguessable URL-safe ticket code (18 characters by default)."""
    length = length or getattr(settings, 'TICKET_CODE_LENGTH', 18)
    return ''.join(secrets.choice(TICKET_CODE_ALPHABET) for _ in range(length))


def is_well_formed_code(code):
    return isinstance(code, str) and bool(TICKET_CODE_RE.match(code))


def build_qr_payload(ticket):
    # Format: TICKET_QR|CODE=<ticket code>|EVENT=<event uuid>
    return '|'.join([
        QR_PREFIX,
        f'CODE={ticket.code}',
        f'EVENT={ticket.event_id}',
    ])


def parse_scanned_code(qr_data):
    """
    Pull the ticket code out of whatever the scanner produced.

    Accepts the TICKET_QR|CODE=...|EVENT=... payload printed on tickets, a
    ticket URL ending in the code or carrying ?code=..., or the bare code.
    Returns None when nothing usable is found.
    """
    if not qr_data:
        return None
    clean = qr_data.strip()

    if clean.startswith(f"{QR_PREFIX}|"):
        data = {}
        for part in clean.split('|')[1:]:
            if '=' in part:
                key, value = part.split('=', 1)
                data[key.upper()] = value.strip()
        code = data.get('CODE')
        return code if is_well_formed_code(code) else None

    if clean.startswith(('http://', 'https://')):
        url = urlparse(clean)
        query = parse_qs(url.query or "")
        for key in ('code', 'ticketCode'):
            if query.get(key) and is_well_formed_code(query[key][0]):
                return query[key][0]
        last = (url.path or "").rstrip('/').split('/')[-1]
        return last if is_well_formed_code(last) else None

    return clean if is_well_formed_code(clean) else None


def render_ticket_qr(ticket, size=300):
    """PNG of the ticket's QR payload, returned as a rewound buffer."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=getattr(settings, 'TICKET_QR_BOX_SIZE', 10),
        border=getattr(settings, 'TICKET_QR_BORDER', 4),
    )
    qr.add_data(build_qr_payload(ticket))
    qr.make(fit=True)

    img = qr.make_image(
        image_factory=qrcode.image.pil.PilImage,
        fill_color="black",
        back_color="white",
    )
    img = img.get_image().resize((size, size), Image.Resampling.NEAREST)

    buffer = BytesIO()
    img.save(buffer, format="PNG", optimize=True)
    buffer.seek(0)
    logger.debug(f"Rendered QR for ticket {ticket.ticket_id} (version {qr.version})")
    return buffer
