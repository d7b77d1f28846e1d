"""
Unit tests for JSON-file local storage
"""
import pytest

from storefront.storage import AUTH_TOKEN, CART_BACKUP, LocalStorage


class TestLocalStorage:
    """Test LocalStorage"""

    @pytest.fixture
    def storage(self, tmp_path):
        return LocalStorage(str(tmp_path / "state" / "storage.json"))

    def test_missing_file_is_empty(self, storage):
        assert storage.get(AUTH_TOKEN) is None
        assert storage.keys() == []

    def test_set_and_get_survive_new_instance(self, storage):
        storage.set(AUTH_TOKEN, "abc")
        storage.set(CART_BACKUP, [{"id": "1"}])

        reopened = LocalStorage(storage.path)

        assert reopened.get(AUTH_TOKEN) == "abc"
        assert reopened.get(CART_BACKUP) == [{"id": "1"}]

    def test_remove(self, storage):
        storage.set(AUTH_TOKEN, "abc")

        assert storage.remove(AUTH_TOKEN) is True
        assert storage.remove(AUTH_TOKEN) is False
        assert storage.has(AUTH_TOKEN) is False

    def test_clear(self, storage):
        storage.set("a", 1)
        storage.clear()

        assert storage.keys() == []

    def test_corrupt_file_treated_as_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("{not json", encoding="utf-8")
        storage = LocalStorage(str(path))

        assert storage.get(AUTH_TOKEN, "fallback") == "fallback"

        storage.set(AUTH_TOKEN, "new")
        assert storage.get(AUTH_TOKEN) == "new"

    def test_non_object_file_treated_as_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("[1, 2]", encoding="utf-8")

        assert LocalStorage(str(path)).keys() == []
