"""
Tests for settings loading and storage configuration checks.
"""
from dataclasses import replace

import pytest

from mediastore.config import Settings, StorageConfig
from mediastore.storage.errors import ConfigurationError


def valid_config(**overrides) -> StorageConfig:
    values = dict(
        endpoint="https://account.r2.cloudflarestorage.com",
        bucket="media",
        access_key="key",
        secret_key="s" * 16,
        public_base_url="https://cdn.example.com/",
    )
    values.update(overrides)
    return StorageConfig(**values)


class TestSettings:

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BUCKET", "media")
        monkeypatch.setenv("STORAGE_PUBLIC_BASE_URL", "https://cdn.example.com/media/")
        monkeypatch.setenv("ADMIN_ROLES", '["Admin", "Manager"]')
        monkeypatch.setenv("LIST_MAX_PAGES", "5")
        monkeypatch.setenv("IMAGE_MAX_PIXELS", "40000000")

        config = StorageConfig.from_settings(Settings(_env_file=None))

        assert config.bucket == "media"
        assert config.public_base_url == "https://cdn.example.com/media"
        assert config.admin_roles == ("admin", "manager")
        assert config.list_max_pages == 5
        assert config.image_max_pixels == 40_000_000
        assert config.allowed_move_roots == ("clients/",)

    def test_defaults(self):
        config = StorageConfig()
        assert config.presign_read_expiration == 3600
        assert config.image_max_dimension == 2560
        assert config.image_quality == 80
        assert config.image_max_pixels == 178_000_000
        assert config.admin_roles == ("admin", "owner")
        assert not config.is_configured


class TestRequire:

    @pytest.mark.parametrize("name,env_name", [
        ("endpoint", "STORAGE_ENDPOINT"),
        ("bucket", "STORAGE_BUCKET"),
        ("access_key", "STORAGE_ACCESS_KEY"),
        ("secret_key", "STORAGE_SECRET_KEY"),
        ("public_base_url", "STORAGE_PUBLIC_BASE_URL"),
    ])
    def test_missing_setting_named(self, name, env_name):
        config = replace(valid_config(), **{name: "  "})
        with pytest.raises(ConfigurationError) as exc_info:
            config.require(name)
        assert exc_info.value.setting == env_name
        assert env_name in exc_info.value.message

    def test_returns_value(self):
        assert valid_config().require("bucket") == "media"


class TestValidate:

    def test_valid(self):
        config = valid_config().validate()
        assert config.public_base_url == "https://cdn.example.com"

    def test_short_secret(self):
        with pytest.raises(ConfigurationError) as exc_info:
            valid_config(secret_key="short").validate()
        assert exc_info.value.setting == "STORAGE_SECRET_KEY"

    @pytest.mark.parametrize("field,env_name", [
        ("endpoint", "STORAGE_ENDPOINT"),
        ("public_base_url", "STORAGE_PUBLIC_BASE_URL"),
    ])
    def test_https_required(self, field, env_name):
        with pytest.raises(ConfigurationError) as exc_info:
            valid_config(**{field: "http://insecure.example.com"}).validate()
        assert exc_info.value.setting == env_name

    def test_missing_public_url(self):
        with pytest.raises(ConfigurationError):
            valid_config(public_base_url=None).validate()
