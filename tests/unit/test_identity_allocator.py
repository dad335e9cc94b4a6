import pytest

from media_ingest.identity.allocator import IdentityAllocator


class TestNewId:
    def test_is_32_lowercase_hex_chars(self) -> None:
        artifact_id = IdentityAllocator().new_id()
        assert len(artifact_id) == 32
        assert IdentityAllocator.is_valid_id(artifact_id)

    def test_ids_do_not_repeat(self) -> None:
        allocator = IdentityAllocator()
        ids = {allocator.new_id() for _ in range(10_000)}
        assert len(ids) == 10_000


class TestFilenameFor:
    def test_extension_comes_from_verified_type(self) -> None:
        allocator = IdentityAllocator()
        assert allocator.filename_for("a" * 32, "image/webp") == "a" * 32 + ".webp"
        assert allocator.filename_for("b" * 32, "image/jpg") == "b" * 32 + ".jpg"


class TestIsValidId:
    @pytest.mark.parametrize(
        "value",
        ["", "../" + "a" * 29, "A" * 32, "a" * 31, "a" * 33, "g" * 32, "a" * 31 + "/"],
    )
    def test_rejects_malformed(self, value: str) -> None:
        assert IdentityAllocator.is_valid_id(value) is False
