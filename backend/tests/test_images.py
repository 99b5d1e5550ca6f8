"""
Tests for the image optimization pipeline.
"""
import io
from dataclasses import replace

import pytest
from PIL import Image

from mediastore.storage.errors import ConfigurationError, InvalidInputError
from mediastore.storage.images import (
    CANONICAL_CONTENT_TYPE,
    IMMUTABLE_CACHE_CONTROL,
    ImageOptimizer,
)
from mediastore.storage.keys import key_from_public_url, public_url

from fakes import PUBLIC_BASE_URL, make_image_bytes


def stored_images(store):
    return [key for key in store.objects if key.endswith(".webp")]


class TestTransform:
    """Tests for decode/resize/encode."""

    @pytest.mark.parametrize("width,height", [
        (4000, 3000),
        (3000, 5000),
        (2561, 2560),
        (5000, 10),
        (800, 600),
        (1, 1),
    ])
    def test_longest_side_bounded_and_never_upscaled(self, store, config, width, height):
        optimizer = ImageOptimizer(store, config)
        encoded = optimizer.transform(make_image_bytes(width, height))

        with Image.open(io.BytesIO(encoded.data)) as result:
            assert result.format == "WEBP"
            assert max(result.size) <= config.image_max_dimension
            assert result.width <= width
            assert result.height <= height
            assert result.size == (encoded.width, encoded.height)

    def test_aspect_ratio_preserved(self, store, config):
        encoded = ImageOptimizer(store, config).transform(make_image_bytes(4000, 3000))
        assert (encoded.width, encoded.height) == (2560, 1920)
        assert (encoded.source_width, encoded.source_height) == (4000, 3000)

    def test_small_image_untouched_dimensions(self, store, config):
        encoded = ImageOptimizer(store, config).transform(make_image_bytes(640, 480, fmt="PNG"))
        assert (encoded.width, encoded.height) == (640, 480)

    def test_custom_bound(self, store, config):
        optimizer = ImageOptimizer(store, replace(config, image_max_dimension=100))
        encoded = optimizer.transform(make_image_bytes(400, 200))
        assert (encoded.width, encoded.height) == (100, 50)

    def test_alpha_kept(self, store, config):
        encoded = ImageOptimizer(store, config).transform(make_image_bytes(50, 50, fmt="PNG", mode="RGBA"))
        with Image.open(io.BytesIO(encoded.data)) as result:
            assert result.mode == "RGBA"

    def test_palette_image_converted(self, store, config):
        encoded = ImageOptimizer(store, config).transform(make_image_bytes(50, 50, fmt="GIF", mode="P"))
        with Image.open(io.BytesIO(encoded.data)) as result:
            assert result.format == "WEBP"
            assert result.mode in ("RGB", "RGBA")

    def test_exif_orientation_applied(self, store, config):
        image = Image.new("RGB", (400, 200), (10, 200, 10))
        exif = Image.Exif()
        exif[0x0112] = 6  # Rotated 90 CW
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", exif=exif.tobytes())

        encoded = ImageOptimizer(store, config).transform(buffer.getvalue())
        assert (encoded.width, encoded.height) == (200, 400)

    def test_garbage_rejected(self, store, config):
        with pytest.raises(InvalidInputError):
            ImageOptimizer(store, config).transform(b"definitely not an image")


class TestOptimize:
    """Tests for the full upload path."""

    def test_example_scenario(self, store, config):
        """photo.jpg 4000x3000 into clients/42/gallery."""
        optimizer = ImageOptimizer(store, config)

        url = optimizer.optimize(make_image_bytes(4000, 3000), "image/jpeg", "clients/42/gallery")

        assert url.startswith(PUBLIC_BASE_URL + "/clients/42/gallery/")
        assert url.endswith(".webp")

        key = key_from_public_url(PUBLIC_BASE_URL, url)
        info = store.head(key)
        assert info.content_type == CANONICAL_CONTENT_TYPE
        assert store.cache_control(key) == IMMUTABLE_CACHE_CONTROL
        with Image.open(io.BytesIO(store.data(key))) as stored:
            assert max(stored.size) <= 2560

    def test_every_upload_gets_a_new_key(self, store, config):
        optimizer = ImageOptimizer(store, config)
        data = make_image_bytes(20, 20)
        urls = {optimizer.optimize(data, "image/png", "clients/42/gallery/") for _ in range(5)}
        assert len(urls) == 5

    def test_non_image_content_type_rejected(self, store, config):
        optimizer = ImageOptimizer(store, config)
        with pytest.raises(InvalidInputError):
            optimizer.optimize(make_image_bytes(20, 20), "application/pdf", "clients/42/gallery")
        assert store.objects == {}

    def test_image_content_type_with_garbage_rejected(self, store, config):
        optimizer = ImageOptimizer(store, config)
        with pytest.raises(InvalidInputError):
            optimizer.optimize(b"%PDF-1.4", "image/jpeg", "clients/42/gallery")
        assert store.objects == {}

    def test_folder_required(self, store, config):
        with pytest.raises(InvalidInputError):
            ImageOptimizer(store, config).optimize(make_image_bytes(20, 20), "image/jpeg", "")

    def test_missing_public_base_url(self, store, config):
        optimizer = ImageOptimizer(store, replace(config, public_base_url=None))
        with pytest.raises(ConfigurationError) as exc_info:
            optimizer.optimize(make_image_bytes(20, 20), "image/jpeg", "clients/42/gallery")
        assert "STORAGE_PUBLIC_BASE_URL" in exc_info.value.message
        assert store.objects == {}

    def test_previous_asset_removed(self, store, config):
        old_key = "clients/42/gallery/old.webp"
        store.seed(old_key, b"old", content_type="image/webp")
        optimizer = ImageOptimizer(store, config)

        url = optimizer.optimize(
            make_image_bytes(20, 20),
            "image/jpeg",
            "clients/42/gallery",
            previous_asset_url=public_url(PUBLIC_BASE_URL, old_key),
        )

        assert old_key not in store.objects
        assert store.exists(key_from_public_url(PUBLIC_BASE_URL, url))

    @pytest.mark.parametrize("previous", [
        "https://elsewhere.example.com/clients/42/gallery/old.webp",
        PUBLIC_BASE_URL + "/clients/42/gallery/missing.webp",
        "not a url",
    ])
    def test_cleanup_failure_never_fails_upload(self, store, config, previous):
        store.seed("clients/42/gallery/keep.webp", b"keep")
        optimizer = ImageOptimizer(store, config)

        url = optimizer.optimize(make_image_bytes(20, 20), "image/jpeg", "clients/42/gallery", previous)

        assert url.startswith(PUBLIC_BASE_URL)
        assert "clients/42/gallery/keep.webp" in store.objects
        assert len(stored_images(store)) == 2

    def test_cleanup_backend_error_swallowed(self, store, config):
        old_key = "clients/42/gallery/old.webp"
        store.seed(old_key, b"old")
        store.fail_delete.add(old_key)
        optimizer = ImageOptimizer(store, config)

        url = optimizer.optimize(
            make_image_bytes(20, 20),
            "image/jpeg",
            "clients/42/gallery",
            previous_asset_url=public_url(PUBLIC_BASE_URL, old_key),
        )

        assert url.startswith(PUBLIC_BASE_URL)
        assert old_key in store.objects

    @pytest.mark.parametrize("folder", ["whatever/anywhere", "clientsX/42", "../clients/42"])
    def test_folder_outside_allowed_roots_rejected(self, store, config, folder):
        optimizer = ImageOptimizer(store, config)
        with pytest.raises(InvalidInputError):
            optimizer.optimize(make_image_bytes(20, 20), "image/jpeg", folder)
        assert store.objects == {}

    @pytest.mark.parametrize("previous_key", [
        "clients/42/contract.pdf",
        "clients/42/gallery/contract.pdf",
        "clients/42/gallery/nested/old.webp",
        "clients/42/other/old.webp",
        "orders/7/photo.webp",
    ])
    def test_previous_asset_outside_folder_kept(self, store, config, previous_key):
        store.seed(previous_key, b"keep")
        optimizer = ImageOptimizer(store, config)

        url = optimizer.optimize(
            make_image_bytes(20, 20),
            "image/jpeg",
            "clients/42/gallery",
            previous_asset_url=public_url(PUBLIC_BASE_URL, previous_key),
        )

        assert url.startswith(PUBLIC_BASE_URL + "/clients/42/gallery/")
        assert previous_key in store.objects
        assert "delete" not in store.calls


class TestPixelLimit:
    """Tests for the decoded-size guard."""

    def test_oversized_image_rejected_before_decoding(self, store, config):
        optimizer = ImageOptimizer(store, replace(config, image_max_pixels=100))
        with pytest.raises(InvalidInputError) as exc_info:
            optimizer.transform(make_image_bytes(20, 20))
        assert "20x20" in exc_info.value.message

    def test_limit_is_inclusive(self, store, config):
        optimizer = ImageOptimizer(store, replace(config, image_max_pixels=400))
        encoded = optimizer.transform(make_image_bytes(20, 20))
        assert (encoded.width, encoded.height) == (20, 20)

    def test_oversized_upload_stores_nothing(self, store, config):
        optimizer = ImageOptimizer(store, replace(config, image_max_pixels=100))
        with pytest.raises(InvalidInputError):
            optimizer.optimize(make_image_bytes(20, 20), "image/png", "clients/42/gallery")
        assert store.objects == {}

