import base64
import binascii
import io
import os
import uuid
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError
from werkzeug.utils import secure_filename

from ..errors import BadRequest

STANDARD_SIZE = 1600
THUMBNAIL_SIZE = 400
JPEG_QUALITY = 90

ITINERARY_EXTENSIONS = {".pdf", ".doc", ".docx"}


def _unique_name(prefix, ext):
    return f"{prefix}-{uuid.uuid4().hex}{ext}"


def decode_data_url(blob):
    """Return the raw bytes of a ``data:image/...;base64,`` string (or bare base64)."""
    if blob.startswith("data:"):
        header, _, blob = blob.partition(",")
        if ";base64" not in header:
            raise BadRequest("Image data must be base64 encoded")
        if not header[5:].startswith("image/"):
            raise BadRequest("Only image uploads are allowed")
    try:
        return base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError):
        raise BadRequest("Invalid image data")


def open_image(stream):
    try:
        img = Image.open(stream)
        img.load()
    except (UnidentifiedImageError, OSError):
        raise BadRequest("File is not a valid image")
    img = ImageOps.exif_transpose(img)
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    return img


def _save_jpeg(img, folder, name, max_size):
    copy = img.copy()
    copy.thumbnail((max_size, max_size))
    copy.save(Path(folder) / name, "JPEG", quality=JPEG_QUALITY, optimize=True)


def save_image_variants(img, upload_folder, prefix="place"):
    """Write a standard and a thumbnail JPEG; return their public URLs."""
    folder = Path(upload_folder) / "images"
    folder.mkdir(parents=True, exist_ok=True)

    standard_name = _unique_name(prefix, ".jpg")
    thumbnail_name = _unique_name(f"{prefix}-thumb", ".jpg")
    _save_jpeg(img, folder, standard_name, STANDARD_SIZE)
    _save_jpeg(img, folder, thumbnail_name, THUMBNAIL_SIZE)
    return f"/uploads/images/{standard_name}", f"/uploads/images/{thumbnail_name}"


def save_image_blob(blob, upload_folder, prefix="place"):
    img = open_image(io.BytesIO(decode_data_url(blob)))
    return save_image_variants(img, upload_folder, prefix)


def save_image_file(file_storage, upload_folder, prefix="image"):
    """Re-encode an uploaded image file; returns (standard_url, thumbnail_url)."""
    img = open_image(file_storage.stream)
    return save_image_variants(img, upload_folder, prefix)


def save_itinerary_file(file_storage, upload_folder):
    filename = secure_filename(file_storage.filename or "")
    ext = os.path.splitext(filename)[1].lower()
    if ext not in ITINERARY_EXTENSIONS:
        raise BadRequest("Only PDF, DOC and DOCX files are allowed for itineraries")

    folder = Path(upload_folder) / "itineraries"
    folder.mkdir(parents=True, exist_ok=True)
    name = _unique_name("itinerary", ext)
    file_storage.save(folder / name)
    return f"/uploads/itineraries/{name}"
