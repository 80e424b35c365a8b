"""Data models for CDN Cache.

Contains data classes for image records, hashing and upload results,
pipeline states, and provider configuration.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class Provenance(str, Enum):
    """Where an input image came from."""
    FINDER = "finder"
    CLIPBOARD = "clipboard"
    FORM = "form"


class PipelineStatus(str, Enum):
    """Terminal (or initial) status of a single pipeline run."""
    INITIAL = "initial"
    NO_INPUT = "no-input"
    CANCELED = "canceled"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ImageRecord:
    """Persisted metadata tying a content hash to its remote upload.

    Attributes:
        hash: Content digest, primary key of the record store
        source: Original local path or origin descriptor
        from_: Provenance tag (stored under the key ``from``)
        format: Normalized file type without leading dot
        url: Canonical CDN URL
        size: Size in bytes
        created_at: Epoch milliseconds, set once at creation
        remote_id: Gateway identifier, needed for remote deletion
        thumbnail_url: Optional preview URL
        width: Optional width in pixels
        height: Optional height in pixels
    """
    hash: str
    source: str
    from_: Provenance
    format: str
    url: str
    size: int
    created_at: int
    remote_id: Optional[str] = None
    thumbnail_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class HashResult:
    """Output of the content hasher.

    Attributes:
        hash: Unpadded base64url SHA-256 digest
        format: Normalized format (sniffed, else path extension)
        size: Byte length of the input
        width: Width if it could be read from the image header
        height: Height if it could be read from the image header
    """
    hash: str
    format: str
    size: int
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class UploadResponse:
    """What a gateway reports back after a successful upload.

    Attributes:
        remote_id: Gateway-assigned identifier
        url: Canonical CDN URL
        thumbnail_url: Preview URL if the service provides one
        size: Stored size in bytes if reported
        width: Width if reported
        height: Height if reported
    """
    remote_id: str
    url: str
    thumbnail_url: Optional[str] = None
    size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class ImageInput:
    """A single image handed to the pipeline.

    Attributes:
        data: Raw image bytes (None when the pipeline should read ``path``)
        source: Path or origin descriptor kept on the record
        provenance: Where the image came from
        path: Local path, used for reading and as a format hint
    """
    source: str
    provenance: Provenance = Provenance.FINDER
    data: Optional[bytes] = None
    path: Optional[Path] = None


@dataclass
class PipelineState:
    """Outcome of one pipeline run, consumed by the presentation layer.

    Attributes:
        status: Run status
        cache: True when the record was served without uploading
        image: The record on success
        source: The input the run was about, when known
        error: The error that ended a failed run
    """
    status: PipelineStatus = PipelineStatus.INITIAL
    cache: bool = False
    image: Optional[ImageRecord] = None
    source: Optional[str] = None
    error: Optional[Exception] = field(default=None, compare=False)

    @classmethod
    def no_input(cls) -> "PipelineState":
        return cls(status=PipelineStatus.NO_INPUT)

    @classmethod
    def canceled(cls, source: str | None = None) -> "PipelineState":
        return cls(status=PipelineStatus.CANCELED, source=source)

    @classmethod
    def succeeded(cls, image: ImageRecord, cache: bool) -> "PipelineState":
        return cls(
            status=PipelineStatus.SUCCEEDED,
            cache=cache,
            image=image,
            source=image.source,
        )

    @classmethod
    def failed(cls, source: str, error: Exception) -> "PipelineState":
        return cls(status=PipelineStatus.FAILED, source=source, error=error)


@dataclass
class R2Config:
    """Cloudflare R2 configuration.

    Attributes:
        account_id: Cloudflare account ID
        access_key_id: R2 access key ID
        secret_access_key: R2 secret access key
        bucket_name: R2 bucket name
        custom_domain: Custom domain for CDN URLs
        prefix: Optional key prefix (e.g., images -> images/<hash>.png)
        thumbnails: Build Cloudflare image-resizing thumbnail URLs
    """
    account_id: str
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    custom_domain: str
    prefix: str = ""
    thumbnails: bool = False


@dataclass
class ImageKitConfig:
    """ImageKit configuration.

    Attributes:
        public_key: ImageKit public key
        private_key: ImageKit private key (used for API auth)
        url_endpoint: URL endpoint of the media library
    """
    public_key: str
    private_key: str
    url_endpoint: str


@dataclass
class AppConfig:
    """Top-level settings outside the provider sections.

    Attributes:
        provider: Gateway provider name (r2 or imagekit)
        records_path: Location of the local record store
        timeout: Transport timeout in seconds
    """
    provider: str = "r2"
    records_path: Optional[Path] = None
    timeout: float = 30.0
