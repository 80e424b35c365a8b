"""Upload gateways for CDN Cache.

Wraps the remote upload/delete APIs behind one async interface:
Cloudflare R2 through boto3 and ImageKit through its HTTP API.
The gateway instance is created once per process and handed to the
pipeline and history manager.
"""

import asyncio
import logging
from typing import Any, Protocol

import boto3
import httpx
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import get_app_config, get_imagekit_config, get_r2_config
from .errors import GatewayError, UploadError
from .models import ImageKitConfig, R2Config, UploadResponse
from .storage import content_type_for, extension_format


logger = logging.getLogger(__name__)

# Status code both services use to confirm a delete
DELETE_SUCCESS_STATUS = 204

THUMBNAIL_WIDTH = 180

IMAGEKIT_UPLOAD_URL = "https://upload.imagekit.io/api/v1/files/upload"
IMAGEKIT_API_URL = "https://api.imagekit.io/v1"


class UploadGateway(Protocol):
    """Remote upload/delete service."""

    async def upload(self, data: bytes, name: str) -> UploadResponse:
        """Upload bytes under exactly ``name``; raise UploadError on failure."""
        ...

    async def delete(self, remote_id: str) -> bool:
        """Delete a remote object; True only on confirmed success."""
        ...

    def preview_url(self, url: str, width: int) -> str:
        """Build a resized preview URL for an uploaded image."""
        ...

    async def verify(self) -> None:
        """Check credentials and connectivity; raise GatewayError on failure."""
        ...

    async def aclose(self) -> None:
        ...


def _non_negative_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def _positive_int(value: Any) -> int | None:
    value = _non_negative_int(value)
    return value if value else None


def init_r2_client(config: R2Config, timeout: float = 30.0) -> Any:
    """Create and return a boto3 S3 client configured for R2.

    Retries are disabled: a failed upload is reported, never repeated.

    Args:
        config: R2 configuration with credentials
        timeout: Connect/read timeout in seconds

    Returns:
        Configured boto3 S3 client
    """
    session = boto3.session.Session()
    client = session.client(
        service_name='s3',
        endpoint_url=f'https://{config.account_id}.r2.cloudflarestorage.com',
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        region_name='auto',
        config=BotoConfig(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={'total_max_attempts': 1},
        ),
    )
    return client


class R2Gateway:
    """Gateway for a Cloudflare R2 bucket served from a custom domain.

    The object key is the given name (under an optional prefix) and
    doubles as the remote identifier.
    """

    def __init__(self, config: R2Config, client: Any = None, timeout: float = 30.0):
        self.config = config
        self._client = client if client is not None else init_r2_client(config, timeout)

    def object_key(self, name: str) -> str:
        prefix = self.config.prefix.strip('/')
        return f"{prefix}/{name}" if prefix else name

    def object_url(self, key: str) -> str:
        return f"https://{self.config.custom_domain}/{key}"

    async def upload(self, data: bytes, name: str) -> UploadResponse:
        key = self.object_key(name)
        try:
            await asyncio.to_thread(self._put_object, key, data)
        except (ClientError, BotoCoreError) as e:
            raise UploadError(f"R2 upload of {name} failed: {e}") from e

        url = self.object_url(key)
        thumbnail_url = self.preview_url(url, THUMBNAIL_WIDTH) if self.config.thumbnails else None
        # put_object reports neither size nor dimensions; the pipeline uses local values
        return UploadResponse(remote_id=key, url=url, thumbnail_url=thumbnail_url)

    def _put_object(self, key: str, data: bytes) -> None:
        self._client.put_object(
            Bucket=self.config.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type_for(extension_format(key) or ''),
            CacheControl='public, max-age=31536000',  # 1 year cache
        )

    async def delete(self, remote_id: str) -> bool:
        try:
            response = await asyncio.to_thread(
                self._client.delete_object,
                Bucket=self.config.bucket_name,
                Key=remote_id,
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning("R2 delete of %s failed: %s", remote_id, e)
            return False

        status = response.get('ResponseMetadata', {}).get('HTTPStatusCode')
        if status != DELETE_SUCCESS_STATUS:
            logger.warning("R2 delete of %s returned status %s", remote_id, status)
            return False
        return True

    def preview_url(self, url: str, width: int) -> str:
        """Build a Cloudflare image-resizing URL for an object on our domain."""
        base = f"https://{self.config.custom_domain}/"
        if not url.startswith(base):
            return url
        return f"{base}cdn-cgi/image/width={width}/{url[len(base):]}"

    async def verify(self) -> None:
        bucket = self.config.bucket_name
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=bucket)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code == '404':
                raise GatewayError(f"Bucket '{bucket}' not found") from e
            elif error_code == '403':
                raise GatewayError(f"Access denied to bucket '{bucket}'. Check your credentials.") from e
            else:
                raise GatewayError(f"Failed to connect to R2: {e}") from e
        except BotoCoreError as e:
            raise GatewayError(f"Failed to connect to R2: {e}") from e

    async def aclose(self) -> None:
        pass


class ImageKitGateway:
    """Gateway for the ImageKit media library."""

    def __init__(
        self,
        config: ImageKitConfig,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.config = config
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)
        # ImageKit authenticates with the private key as the basic-auth user
        self._auth = httpx.BasicAuth(config.private_key, "")

    async def upload(self, data: bytes, name: str) -> UploadResponse:
        try:
            response = await self._client.post(
                IMAGEKIT_UPLOAD_URL,
                auth=self._auth,
                files={'file': (name, data)},
                data={'fileName': name, 'useUniqueFileName': 'false'},
            )
        except httpx.HTTPError as e:
            raise UploadError(f"ImageKit upload of {name} failed: {e}") from e

        if not response.is_success:
            raise UploadError(
                f"ImageKit upload of {name} failed with status "
                f"{response.status_code}: {_error_message(response)}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UploadError(f"ImageKit returned invalid JSON for {name}") from e
        if not isinstance(body, dict):
            raise UploadError(f"ImageKit response for {name} is not an object")

        url = body.get('url')
        file_id = body.get('fileId')
        if not isinstance(url, str) or not url or not isinstance(file_id, str) or not file_id:
            raise UploadError(f"ImageKit response for {name} is missing url or fileId")

        thumbnail_url = body.get('thumbnailUrl')
        return UploadResponse(
            remote_id=file_id,
            url=url,
            thumbnail_url=thumbnail_url if isinstance(thumbnail_url, str) and thumbnail_url else None,
            size=_non_negative_int(body.get('size')),
            width=_positive_int(body.get('width')),
            height=_positive_int(body.get('height')),
        )

    async def delete(self, remote_id: str) -> bool:
        try:
            response = await self._client.delete(
                f"{IMAGEKIT_API_URL}/files/{remote_id}",
                auth=self._auth,
            )
        except httpx.HTTPError as e:
            logger.warning("ImageKit delete of %s failed: %s", remote_id, e)
            return False

        if response.status_code != DELETE_SUCCESS_STATUS:
            logger.warning(
                "ImageKit delete of %s returned status %s: %s",
                remote_id, response.status_code, _error_message(response),
            )
            return False
        return True

    def preview_url(self, url: str, width: int) -> str:
        """Append an ImageKit width transformation to a media URL."""
        if not url.startswith(self.config.url_endpoint):
            return url
        return str(httpx.URL(url).copy_merge_params({'tr': f'w-{width}'}))

    async def verify(self) -> None:
        try:
            response = await self._client.get(
                f"{IMAGEKIT_API_URL}/files",
                params={'limit': 1},
                auth=self._auth,
            )
        except httpx.HTTPError as e:
            raise GatewayError(f"Failed to connect to ImageKit: {e}") from e

        if response.status_code in (401, 403):
            raise GatewayError("ImageKit rejected the private key. Check your credentials.")
        if not response.is_success:
            raise GatewayError(
                f"ImageKit returned status {response.status_code}: {_error_message(response)}"
            )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get('message'):
        return str(body['message'])
    return response.text[:200]


def init_gateway(secrets: dict[str, Any]) -> UploadGateway:
    """Build the gateway for the configured provider.

    Args:
        secrets: Dictionary loaded from secrets.json (already validated)

    Returns:
        Gateway instance for the process
    """
    app_config = get_app_config(secrets)
    if app_config.provider == 'imagekit':
        return ImageKitGateway(get_imagekit_config(secrets), timeout=app_config.timeout)
    return R2Gateway(get_r2_config(secrets), timeout=app_config.timeout)
