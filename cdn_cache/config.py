"""Configuration and secrets management for CDN Cache.

Handles loading secrets.json, validating configuration, and building
the R2 / ImageKit provider settings and local paths.
"""

import json
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .models import AppConfig, ImageKitConfig, R2Config


PROVIDERS = ('r2', 'imagekit')

REQUIRED_FIELDS = {
    'r2': (
        'account_id',
        'access_key_id',
        'secret_access_key',
        'bucket_name',
        'custom_domain',
    ),
    'imagekit': (
        'public_key',
        'private_key',
        'url_endpoint',
    ),
}


def get_config_dir() -> Path:
    """Get or create the config directory.

    Returns:
        Path to config directory (~/.config/cdn-cache/)
    """
    config_dir = Path.home() / ".config" / "cdn-cache"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def load_secrets(secrets_path: Path | None = None) -> dict[str, Any]:
    """Load secrets.json.

    Searches for secrets.json in the following order:
    1. Explicit path if provided
    2. ~/.config/cdn-cache/secrets.json (recommended)
    3. ./secrets.json (current directory)

    Args:
        secrets_path: Optional explicit path to secrets.json

    Returns:
        Dictionary containing all secrets

    Raises:
        ConfigError: If secrets.json is missing or invalid
    """
    if secrets_path is not None:
        if not secrets_path.exists():
            raise ConfigError(f"secrets.json not found at {secrets_path}.")
        found_path = secrets_path
    else:
        config_path = get_config_dir() / "secrets.json"
        local_path = Path("secrets.json")

        if config_path.exists():
            found_path = config_path
        elif local_path.exists():
            found_path = local_path
        else:
            raise ConfigError(
                f"secrets.json not found at {config_path}. "
                "Create it with your R2 or ImageKit credentials."
            )

    try:
        with open(found_path) as f:
            secrets = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {found_path}: {e}")

    if not isinstance(secrets, dict):
        raise ConfigError(f"{found_path} must contain a JSON object")

    return secrets


def get_provider(secrets: dict[str, Any]) -> str:
    """Return the configured provider name (defaults to r2)."""
    provider = secrets.get('provider', 'r2')
    if provider not in PROVIDERS:
        raise ConfigError(
            f"Unknown provider: {provider!r} (expected one of {', '.join(PROVIDERS)})"
        )
    return provider


def validate_config(secrets: dict[str, Any]) -> None:
    """Validate that the selected provider's fields are present.

    Args:
        secrets: Dictionary loaded from secrets.json

    Raises:
        ConfigError: If the provider is unknown or fields are missing
    """
    provider = get_provider(secrets)

    section = secrets.get(provider)
    if not isinstance(section, dict):
        raise ConfigError(f"Missing required section: {provider}")

    for field in REQUIRED_FIELDS[provider]:
        if not section.get(field):
            raise ConfigError(f"Missing required field: {provider}.{field}")

    timeout = secrets.get('timeout', 30)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"Invalid timeout: {timeout!r}")


def get_r2_config(secrets: dict[str, Any]) -> R2Config:
    """Extract R2 configuration from secrets.

    Args:
        secrets: Dictionary loaded from secrets.json

    Returns:
        R2Config dataclass with credentials
    """
    r2 = secrets["r2"]
    return R2Config(
        account_id=r2["account_id"],
        access_key_id=r2["access_key_id"],
        secret_access_key=r2["secret_access_key"],
        bucket_name=r2["bucket_name"],
        custom_domain=r2["custom_domain"].rstrip('/'),
        prefix=r2.get("prefix", ""),
        thumbnails=bool(r2.get("thumbnails", False)),
    )


def get_imagekit_config(secrets: dict[str, Any]) -> ImageKitConfig:
    """Extract ImageKit configuration from secrets.

    Args:
        secrets: Dictionary loaded from secrets.json

    Returns:
        ImageKitConfig dataclass with keys and endpoint
    """
    imagekit = secrets["imagekit"]
    return ImageKitConfig(
        public_key=imagekit["public_key"],
        private_key=imagekit["private_key"],
        url_endpoint=imagekit["url_endpoint"].rstrip('/'),
    )


def get_app_config(secrets: dict[str, Any]) -> AppConfig:
    """Extract the provider-independent settings."""
    records_path = secrets.get('records_path')
    return AppConfig(
        provider=get_provider(secrets),
        records_path=Path(records_path).expanduser() if records_path else None,
        timeout=float(secrets.get('timeout', 30)),
    )


def get_records_path(secrets: dict[str, Any] | None = None) -> Path:
    """Resolve where the local record store lives.

    Args:
        secrets: Optional secrets; ``records_path`` overrides the default

    Returns:
        Path to records.json (~/.config/cdn-cache/records.json by default)
    """
    if secrets:
        records_path = get_app_config(secrets).records_path
        if records_path is not None:
            return records_path
    return get_config_dir() / "records.json"
