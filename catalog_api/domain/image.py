"""
Image Domain Models

Value objects that flow through the ingestion pipeline: the classified
image sources and the record of a finished upload.
"""
from dataclasses import dataclass
from typing import Union

# 1x1 transparent PNG uploaded whenever no real image can be supplied
PLACEHOLDER_IMAGE_DATA_URL = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
PLACEHOLDER_EXTENSION = "png"


@dataclass(frozen=True)
class EmbeddedData:
    """Base64 data URL already decoded to bytes"""
    extension: str
    data: bytes


@dataclass(frozen=True)
class ExternalUrl:
    url: str


@dataclass(frozen=True)
class UnsupportedLocalReference:
    """file:// path on the client device; the server cannot read it"""
    token: str


ImageSource = Union[EmbeddedData, ExternalUrl, UnsupportedLocalReference]


@dataclass(frozen=True)
class UploadedFile:
    """What the image host returns for one stored file"""
    file_id: str
    url: str
    file_name: str
    file_path: str = ""


@dataclass(frozen=True)
class UploadedImageRecord:
    """
    One image that is already stored at the image host and ready to be
    attached to a product.

    Fields:
        file_id: Image host identifier, unique per upload
        url: Public URL of the stored file
        file_name: Name the host stored the file under
        order: Zero-based position in the original request
        is_placeholder: True when the built-in placeholder was uploaded
    """
    file_id: str
    url: str
    file_name: str
    order: int
    is_placeholder: bool = False

    @classmethod
    def from_upload(cls, uploaded: UploadedFile, order: int, is_placeholder: bool = False) -> "UploadedImageRecord":
        return cls(
            file_id=uploaded.file_id,
            url=uploaded.url,
            file_name=uploaded.file_name,
            order=order,
            is_placeholder=is_placeholder,
        )
