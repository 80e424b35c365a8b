"""Tests for config.py module.

Tests secrets loading, provider validation and config extraction.
"""

import json
from pathlib import Path

import pytest

from cdn_cache.config import (
    get_app_config,
    get_imagekit_config,
    get_r2_config,
    get_records_path,
    load_secrets,
    validate_config,
)
from cdn_cache.errors import ConfigError


@pytest.fixture
def r2_secrets():
    """Valid R2 secrets."""
    return {
        "r2": {
            "account_id": "acct",
            "access_key_id": "key",
            "secret_access_key": "secret",
            "bucket_name": "bucket",
            "custom_domain": "cdn.test.com/",
            "prefix": "images",
        },
    }


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    """Point Path.home() at a temporary directory."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    return tmp_path


class TestLoadSecrets:
    """Tests for load_secrets function."""

    def test_explicit_path(self, tmp_path, r2_secrets):
        """Should load the given file."""
        path = tmp_path / "secrets.json"
        path.write_text(json.dumps(r2_secrets))

        assert load_secrets(path) == r2_secrets

    def test_missing_explicit_path(self, tmp_path):
        """A missing explicit file is a ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            load_secrets(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        """Broken JSON is a ConfigError."""
        path = tmp_path / "secrets.json"
        path.write_text("{")

        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_secrets(path)

    def test_searches_config_dir(self, fake_home, r2_secrets):
        """Should find secrets.json in ~/.config/cdn-cache."""
        config_dir = fake_home / ".config" / "cdn-cache"
        config_dir.mkdir(parents=True)
        (config_dir / "secrets.json").write_text(json.dumps(r2_secrets))

        assert load_secrets() == r2_secrets


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_r2(self, r2_secrets):
        """Complete R2 secrets should pass."""
        validate_config(r2_secrets)

    def test_missing_field(self, r2_secrets):
        """Each required field must be present and non-empty."""
        r2_secrets["r2"]["bucket_name"] = ""

        with pytest.raises(ConfigError, match="r2.bucket_name"):
            validate_config(r2_secrets)

    def test_missing_section(self):
        """The selected provider's section is required."""
        with pytest.raises(ConfigError, match="imagekit"):
            validate_config({"provider": "imagekit"})

    def test_unknown_provider(self, r2_secrets):
        """Unknown providers are rejected."""
        r2_secrets["provider"] = "s3-ish"

        with pytest.raises(ConfigError, match="Unknown provider"):
            validate_config(r2_secrets)

    def test_invalid_timeout(self, r2_secrets):
        """Timeout must be a positive number."""
        r2_secrets["timeout"] = 0

        with pytest.raises(ConfigError, match="timeout"):
            validate_config(r2_secrets)


class TestExtractConfig:
    """Tests for the get_*_config helpers."""

    def test_r2_config(self, r2_secrets):
        """Should strip trailing slashes and read optional fields."""
        config = get_r2_config(r2_secrets)

        assert config.custom_domain == "cdn.test.com"
        assert config.prefix == "images"
        assert config.thumbnails is False

    def test_imagekit_config(self):
        """Should read ImageKit keys and endpoint."""
        config = get_imagekit_config({
            "imagekit": {
                "public_key": "pub",
                "private_key": "priv",
                "url_endpoint": "https://ik.imagekit.io/me/",
            },
        })

        assert config.private_key == "priv"
        assert config.url_endpoint == "https://ik.imagekit.io/me"

    def test_app_config_defaults(self, r2_secrets):
        """Provider defaults to r2, timeout to 30 seconds."""
        config = get_app_config(r2_secrets)

        assert config.provider == "r2"
        assert config.timeout == 30.0
        assert config.records_path is None

    def test_records_path_override(self, r2_secrets, tmp_path):
        """records_path in secrets should win."""
        r2_secrets["records_path"] = str(tmp_path / "mine.json")

        assert get_records_path(r2_secrets) == tmp_path / "mine.json"

    def test_records_path_default(self, fake_home):
        """Default records live in the config directory."""
        assert get_records_path() == fake_home / ".config" / "cdn-cache" / "records.json"
