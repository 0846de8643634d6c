# payments/utils.py

import hashlib
import logging
import os

from django.conf import settings
from PIL import Image, UnidentifiedImageError

from api.exceptions import ValidationError

logger = logging.getLogger(__name__)


def validate_proof_image(upload):
    """
    Check an uploaded transfer slip: allowed extension, size limit and
    content Pillow can actually decode as an image.
    Returns the SHA-256 hex digest of the file content.
    """
    if upload is None:
        raise ValidationError("Slip file is required.")

    name = getattr(upload, 'name', '') or ''
    ext = os.path.splitext(name)[-1].lower().lstrip('.')
    if ext not in settings.PAYMENT_PROOF_EXTENSIONS:
        allowed = ', '.join(e.upper() for e in settings.PAYMENT_PROOF_EXTENSIONS)
        raise ValidationError(f"Invalid file type. Only {allowed} are allowed.")

    size = getattr(upload, 'size', None)
    if size is not None and size > settings.PAYMENT_PROOF_MAX_BYTES:
        limit_mb = settings.PAYMENT_PROOF_MAX_BYTES // (1024 * 1024)
        raise ValidationError(f"File size exceeds {limit_mb}MB limit.")

    digest = hashlib.sha256()
    upload.seek(0)
    for chunk in upload.chunks():
        digest.update(chunk)

    upload.seek(0)
    try:
        with Image.open(upload) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.info("Rejected payment slip %s: %s", name, e)
        raise ValidationError("The uploaded file is not a valid image.")
    finally:
        upload.seek(0)

    return digest.hexdigest()
