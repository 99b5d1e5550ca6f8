"""
Tests for object key construction and validation.
"""
import re
from datetime import datetime, timezone

import pytest

from mediastore.storage.errors import InvalidInputError
from mediastore.storage.keys import (
    CategoryRoot,
    build_key,
    build_object_key,
    category_of,
    encode_key,
    key_from_public_url,
    public_url,
    sanitize_filename,
    slugify,
    timestamp_token,
    validate_key,
    validate_prefix,
)

BASE = "https://cdn.example.com/media"


class TestSanitizeFilename:
    """Tests for filename sanitization."""

    def test_transliterates_and_lowercases(self):
        assert sanitize_filename("Zdjęcie Łazienki.JPG") == "zdjecie-lazienki.jpg"

    def test_letters_without_decomposition(self):
        assert sanitize_filename("Straße_Ærø.pdf") == "strasse_aero.pdf"

    def test_collapses_separators(self):
        assert sanitize_filename("a -- b__c..png") == "a-b_c.png"

    def test_drops_directory_components(self):
        assert sanitize_filename("../../etc/passwd") == "passwd"
        assert sanitize_filename("C:\\Users\\me\\scan.PDF") == "scan.pdf"

    def test_empty_falls_back(self):
        assert sanitize_filename("") == "file"
        assert sanitize_filename("???") == "file"

    def test_keeps_extension_when_stem_is_unusable(self):
        assert sanitize_filename("###.jpg") == "file.jpg"

    def test_dotfile_has_no_extension(self):
        assert sanitize_filename(".env") == "env"


class TestSlugify:

    def test_company_name(self):
        assert slugify("Józef Łęcki Sp. z o.o.") == "jozef-lecki-sp-z-o-o"

    def test_empty(self):
        assert slugify("  ") == ""


class TestBuildKey:
    """Tests for both key layouts."""

    def test_nested_layout(self):
        key = build_key(
            CategoryRoot.CLIENTS,
            "Photo 1.JPG",
            entity_id=42,
            sub_path="montages/7/photos/before",
        )
        assert re.fullmatch(r"clients/42/montages/7/photos/before/[0-9a-f]{32}-photo-1\.jpg", key)

    def test_nested_layout_accepts_segment_list(self):
        key = build_key("orders", "invoice.pdf", entity_id="A-17", sub_path=["docs", "", "2024"])
        assert key.startswith("orders/a-17/docs/2024/")

    def test_legacy_layout(self):
        now = datetime(2024, 5, 1, 10, 20, 30, 123000, tzinfo=timezone.utc)
        key = build_key(CategoryRoot.CLIENTS, "umowa.pdf", entity_name="Jan Kowalski", now=now)
        assert re.fullmatch(
            r"clients/jan-kowalski/dokumenty/2024-05-01T10-20-30-123Z-[0-9a-f]{8}-umowa\.pdf",
            key,
        )

    def test_legacy_layout_with_sub_path(self):
        key = build_key(CategoryRoot.PARTNERS, "a.pdf", entity_name="ACME", sub_path="contracts")
        assert key.startswith("partners/acme/contracts/")

    def test_requires_entity(self):
        with pytest.raises(InvalidInputError):
            build_key(CategoryRoot.TASKS, "a.pdf")

    def test_unknown_root_rejected(self):
        with pytest.raises(InvalidInputError):
            build_key("invoices", "a.pdf", entity_id=1)

    def test_unique_under_load(self):
        """Same filename, same folder, same instant: keys never collide."""
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        nested = {build_key("clients", "photo.jpg", entity_id=42, sub_path="gallery") for _ in range(2000)}
        legacy = {build_key("clients", "photo.jpg", entity_name="Jan", now=now) for _ in range(500)}
        assert len(nested) == 2000
        assert len(legacy) == 500


class TestBuildObjectKey:

    def test_places_file_in_folder(self):
        key = build_object_key("clients/42/gallery", "Widok.png")
        assert re.fullmatch(r"clients/42/gallery/[0-9a-f]{32}-widok\.png", key)

    def test_rejects_bucket_root(self):
        with pytest.raises(InvalidInputError):
            build_object_key("", "a.png")


class TestValidation:

    @pytest.mark.parametrize("key", ["", "/clients/a", "clients/a/", "clients//a"])
    def test_invalid_keys(self, key):
        with pytest.raises(InvalidInputError):
            validate_key(key)

    def test_valid_key(self):
        assert validate_key("clients/42/a.pdf") == "clients/42/a.pdf"

    def test_prefix_normalization(self):
        assert validate_prefix("/clients/42") == "clients/42/"
        assert validate_prefix("clients/") == "clients/"
        assert validate_prefix("") == ""
        assert validate_prefix(None) == ""

    def test_prefix_with_empty_segment(self):
        with pytest.raises(InvalidInputError):
            validate_prefix("clients//42")

    def test_category_of(self):
        assert category_of("montages/3/a.jpg") is CategoryRoot.MONTAGES
        with pytest.raises(InvalidInputError):
            category_of("other/a.jpg")


class TestPublicUrls:

    def test_segments_encoded_independently(self):
        assert encode_key("clients/Jan K/a#1.pdf") == "clients/Jan%20K/a%231.pdf"

    def test_public_url(self):
        assert public_url(BASE + "/", "clients/42/a.webp") == f"{BASE}/clients/42/a.webp"

    def test_key_from_public_url_reverses(self):
        key = "clients/Jan K/zdjęcie #1.webp"
        assert key_from_public_url(BASE, public_url(BASE, key)) == key

    @pytest.mark.parametrize("url", [
        None,
        "",
        "https://other.example.com/media/clients/a.webp",
        "http://cdn.example.com/media/clients/a.webp",
        "https://cdn.example.com/elsewhere/clients/a.webp",
        "https://cdn.example.com/media/",
    ])
    def test_key_from_foreign_url(self, url):
        assert key_from_public_url(BASE, url) is None

    def test_timestamp_token_format(self):
        now = datetime(2024, 1, 2, 3, 4, 5, 6000, tzinfo=timezone.utc)
        assert timestamp_token(now) == "2024-01-02T03-04-05-006Z"
