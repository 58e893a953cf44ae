"""
Image Pipeline

Turns an uploaded cover picture into a durable image in the content
directory, and removes durable images once a book no longer points at them.

Lifecycle of an upload:
=======================
1. stage(): the raw upload is written to the uploads directory
2. ingest(): Pillow decodes it, fixes EXIF orientation, flattens it to RGB,
   shrinks it to at most IMAGE_MAX_WIDTH pixels wide and saves a JPEG
   (IMAGE_QUALITY) under a generated name in the content directory
3. leaving the stage() block deletes the raw upload, success or not

The content directory is served statically under IMAGES_URL_PATH, so a
book's imageUrl is `<base url><IMAGES_URL_PATH>/<filename>`.

Deleting durable images is best-effort: a failure is logged and swallowed,
since the database record is the source of truth.
"""

import logging
import re
import shutil
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

from bookrater.exceptions import InternalError, ValidationError

logger = logging.getLogger(__name__)

# Accepted upload MIME types and the extension used for the staged file
MIME_TYPES = {
    "image/jpg": "jpg",
    "image/jpeg": "jpg",
    "image/png": "png",
}

DURABLE_PREFIX = "optimized_"


class ImagePipeline:
    """
    Stages, normalizes and removes book cover images.

    Args:
        images_dir: Content directory for durable images
        uploads_dir: Scratch directory for raw uploads
        url_path: URL prefix the content directory is served under
        max_width: Maximum width of a durable image, in pixels
        quality: JPEG quality of durable images
    """

    def __init__(
        self,
        images_dir: str | Path,
        uploads_dir: str | Path,
        url_path: str = "/images",
        max_width: int = 800,
        quality: int = 80,
    ) -> None:
        self.images_dir = Path(images_dir)
        self.uploads_dir = Path(uploads_dir)
        self.url_path = "/" + url_path.strip("/")
        self.max_width = max_width
        self.quality = quality

        self.images_dir.mkdir(parents=True, exist_ok=True)
        self.uploads_dir.mkdir(parents=True, exist_ok=True)

    # -------------------------------------------------------------------------
    # Raw uploads
    # -------------------------------------------------------------------------
    @contextmanager
    def stage(self, upload: UploadFile) -> Iterator[Path]:
        """
        Write a raw upload to disk for the duration of a `with` block.

        The staged file is deleted on exit, whether the block succeeded or
        raised.

        Raises:
            ValidationError: If the upload is not a JPEG or PNG
        """
        extension = MIME_TYPES.get(upload.content_type or "")
        if extension is None:
            raise ValidationError("Unsupported image type, use JPEG or PNG")

        stem = Path(upload.filename or "upload").stem
        stem = re.sub(r"[^A-Za-z0-9_-]", "_", stem)[:50] or "upload"
        raw_path = self.uploads_dir / f"{stem}{time.time_ns()}.{extension}"

        try:
            upload.file.seek(0)
            with raw_path.open("wb") as buffer:
                shutil.copyfileobj(upload.file, buffer)
            yield raw_path
        finally:
            self._discard(raw_path, "raw upload")

    # -------------------------------------------------------------------------
    # Durable images
    # -------------------------------------------------------------------------
    def ingest(self, raw_path: Path) -> str:
        """
        Produce a durable JPEG from a staged upload.

        Returns:
            Filename of the durable image inside the content directory

        Raises:
            ValidationError: If the file cannot be decoded as an image
            InternalError: If the durable image cannot be written
        """
        try:
            with Image.open(raw_path) as source:
                source.load()
                image = ImageOps.exif_transpose(source)
        except (UnidentifiedImageError, OSError) as e:
            logger.warning(f"Rejected upload {raw_path.name}: {e}")
            raise ValidationError("Invalid image file") from None

        image = self._flatten(image)

        if image.width > self.max_width:
            height = max(1, round(image.height * self.max_width / image.width))
            image = image.resize(
                (self.max_width, height),
                Image.Resampling.LANCZOS,
            )

        filename = f"{DURABLE_PREFIX}{time.time_ns()}_{uuid.uuid4().hex[:8]}.jpg"
        try:
            image.save(
                self.images_dir / filename,
                "JPEG",
                quality=self.quality,
                optimize=True,
            )
        except OSError as e:
            logger.error(f"Could not write image {filename}: {e}")
            raise InternalError("Could not store the image") from e

        logger.info(f"Stored image {filename} ({image.width}x{image.height})")
        return filename

    @staticmethod
    def _flatten(image: Image.Image) -> Image.Image:
        """Convert to a JPEG-compatible mode, compositing alpha onto white."""
        has_alpha = image.mode in ("RGBA", "LA") or (
            image.mode == "P" and "transparency" in image.info
        )
        if has_alpha:
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, "white")
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background

        if image.mode not in ("RGB", "L"):
            return image.convert("RGB")
        return image

    def remove(self, image: str) -> bool:
        """
        Best-effort removal of a durable image.

        Args:
            image: A stored imageUrl or a bare filename

        Returns:
            True if the file was deleted, False otherwise (logged)
        """
        filename = self.filename_from_url(image)
        if not filename:
            logger.warning(f"Cannot resolve image file from {image!r}")
            return False
        return self._discard(self.path_for(filename), "image")

    # -------------------------------------------------------------------------
    # URLs
    # -------------------------------------------------------------------------
    def public_url(self, base_url: str, filename: str) -> str:
        """Build the absolute URL a durable image is served at."""
        return f"{base_url.rstrip('/')}{self.url_path}/{filename}"

    def filename_from_url(self, image_url: str) -> str:
        """
        Extract the content-directory filename from a stored imageUrl.

        Only the last path segment is ever returned, so a crafted URL cannot
        point outside the content directory.
        """
        marker = f"{self.url_path}/"
        tail = image_url.rsplit(marker, 1)[-1]
        return Path(tail).name

    def path_for(self, filename: str) -> Path:
        return self.images_dir / Path(filename).name

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------
    @staticmethod
    def _discard(path: Path, what: str) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning(f"Could not delete {what} {path}: file is missing")
            return False
        except OSError as e:
            logger.warning(f"Could not delete {what} {path}: {e}")
            return False
        return True
