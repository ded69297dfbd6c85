"""
Image Normalizer

Classifies the raw image strings a client sends with a product:

    data:image/png;base64,iVBOR...   -> EmbeddedData (decoded bytes)
    https://cdn.example.com/a.jpg    -> ExternalUrl
    file:///var/mobile/.../a.jpg     -> UnsupportedLocalReference

Anything else is rejected. Pure functions, no I/O.
"""
import base64
import binascii
import re
import time
from typing import Optional

from catalog_api.core.exceptions import ImageNormalizationError, NormalizationReason
from catalog_api.domain.image import (
    EmbeddedData,
    ExternalUrl,
    ImageSource,
    UnsupportedLocalReference,
)

DATA_URL_PREFIX = "data:"
LOCAL_REFERENCE_PREFIX = "file://"
HTTP_PREFIXES = ("http://", "https://")
DEFAULT_EXTENSION = "jpg"

_DATA_URL_SUBTYPE = re.compile(r"^data:image/([a-z]+);base64,")
_CONTENT_TYPE_SUBTYPE = re.compile(r"^image/([a-z]+)")
_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9]")


def extension_from_data_url(data_url: str) -> str:
    match = _DATA_URL_SUBTYPE.match(data_url)
    return match.group(1) if match else DEFAULT_EXTENSION


def extension_from_content_type(content_type: Optional[str]) -> str:
    """Extension for a fetched resource; jpg when the type is not image/*"""
    if not content_type:
        return DEFAULT_EXTENSION
    match = _CONTENT_TYPE_SUBTYPE.match(content_type.strip().lower())
    return match.group(1) if match else DEFAULT_EXTENSION


def decode_data_url(data_url: str) -> bytes:
    """
    Decode the payload of a base64 data URL

    Raises:
        ImageNormalizationError: MALFORMED_DATA if the payload is missing or not valid base64
    """
    header, separator, payload = data_url.partition(",")
    if not separator or ";base64" not in header:
        raise ImageNormalizationError(
            NormalizationReason.MALFORMED_DATA,
            "Image data URL must be base64 encoded"
        )

    try:
        data = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageNormalizationError(
            NormalizationReason.MALFORMED_DATA,
            f"Image data is not valid base64: {e}"
        ) from e

    if not data:
        raise ImageNormalizationError(NormalizationReason.MALFORMED_DATA, "Image data is empty")

    return data


def normalize(raw: str) -> ImageSource:
    """
    Classify one raw image string

    Raises:
        ImageNormalizationError: MALFORMED_DATA or UNKNOWN_FORMAT
    """
    if raw.startswith(DATA_URL_PREFIX):
        return EmbeddedData(extension=extension_from_data_url(raw), data=decode_data_url(raw))

    if raw.startswith(LOCAL_REFERENCE_PREFIX):
        return UnsupportedLocalReference(token=raw)

    if raw.startswith(HTTP_PREFIXES):
        return ExternalUrl(url=raw)

    raise ImageNormalizationError(
        NormalizationReason.UNKNOWN_FORMAT,
        "Unsupported image format. Please use base64 data URLs or HTTP URLs."
    )


def sanitize_name(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", name)


def build_file_name(
    product_name: str,
    extension: str,
    index: Optional[int] = None,
    tag: Optional[str] = None,
    timestamp_ms: Optional[int] = None,
) -> str:
    """
    File name for an upload: <sanitized name>[_<tag>]_<ms timestamp>[_<index>].<ext>

    Example:
        build_file_name("Red Mug", "png", index=0)  -> "Red_Mug_1729350000000_0.png"
        build_file_name("Red Mug", "png", tag="no_images")  -> "Red_Mug_no_images_1729350000000.png"
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    parts = [sanitize_name(product_name)]
    if tag:
        parts.append(tag)
    parts.append(str(timestamp_ms))
    if index is not None:
        parts.append(str(index))

    return f"{'_'.join(parts)}.{extension}"
