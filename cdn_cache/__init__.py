"""CDN Cache - Upload images to your CDN once per unique content.

Hashes each image, reuses the earlier upload when identical content was
sent before, and otherwise uploads it to Cloudflare R2 or ImageKit and
records the result locally.
"""

__version__ = "0.1.0"
__author__ = "CDN Cache"

from .models import ImageRecord, PipelineState, PipelineStatus, Provenance

__all__ = [
    "__version__",
    "ImageRecord",
    "PipelineState",
    "PipelineStatus",
    "Provenance",
]
