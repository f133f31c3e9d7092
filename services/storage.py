import logging
import os

import cloudinary
import cloudinary.uploader

import config
from services.errors import ValidationError

logger = logging.getLogger(__name__)


def _configure():
    cloudinary.config(
        cloud_name=config.CLOUDINARY_CLOUD_NAME,
        api_key=config.CLOUDINARY_API_KEY,
        api_secret=config.CLOUDINARY_API_SECRET,
        secure=True,
    )


def store(file_bytes, name):
    """Upload a file and return its public URL."""
    if not config.storage_configured():
        raise ValidationError("File uploads are not configured on this server")
    if not file_bytes:
        raise ValidationError("Uploaded file is empty")

    _configure()
    public_id, _ = os.path.splitext(os.path.basename(name or "upload"))
    result = cloudinary.uploader.upload(
        file_bytes,
        folder=config.UPLOAD_FOLDER,
        public_id=public_id,
        resource_type="auto",
        use_filename=True,
        unique_filename=True,
    )
    url = result.get("secure_url")
    logger.info("Stored %s at %s", name, url)
    return url
