import os
import time
from typing import Iterable, Optional, Tuple

from werkzeug.utils import secure_filename

from .results import Failure, validation_failure


def allowed_image_extension(filename: str, allowed: Iterable[str]) -> bool:
    extension = os.path.splitext(filename)[1].lower().lstrip(".")
    if not extension:
        return False
    return extension in allowed


def generate_image_filename(extension: str) -> str:
    return f"img-{int(time.time() * 1000)}{extension}"


def save_product_image(
    image_file, upload_folder: str, allowed_extensions: Iterable[str]
) -> Tuple[str, Optional[Failure]]:
    """Store an optional uploaded image and return its generated filename.

    A missing file is not an error: the product is stored with an empty
    image reference.
    """
    if not image_file or not getattr(image_file, "filename", ""):
        return "", None

    original_filename = secure_filename(image_file.filename)
    if not original_filename:
        return "", validation_failure("Please choose a valid file name.")

    if not allowed_image_extension(original_filename, allowed_extensions):
        return "", validation_failure(
            "Unsupported image format. Upload PNG, JPG, JPEG, GIF, or WEBP files."
        )

    extension = os.path.splitext(original_filename)[1].lower()
    filename = generate_image_filename(extension)
    destination = os.path.join(upload_folder, filename)

    try:
        image_file.save(destination)
    except OSError:
        return "", validation_failure(
            "We could not store the uploaded image. Please try again."
        )

    return filename, None


def remove_product_image(filename: Optional[str], upload_folder: str) -> None:
    if not filename:
        return
    try:
        os.remove(os.path.join(upload_folder, filename))
    except OSError:
        return
