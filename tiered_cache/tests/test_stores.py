"""
Unit tests for the document stores and their manager.
"""

import json
import pytest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

from shared.config import CacheConfig
from shared.errors import (
    CacheDecodeError,
    CacheDeleteError,
    CacheEncodeError,
    CacheWriteError,
    SecretStoreError,
)
from tiered_cache.persistence import (
    AppData,
    DataStoreManager,
    FileStore,
    KeyValueStore,
    SecretStore,
    SecureData,
    UserPreferences,
)


class TestKeyValueStore:
    """Test cases for KeyValueStore."""

    @pytest.fixture
    def path(self, tmp_path):
        return tmp_path / "prefs" / "preferences.json"

    def test_load_before_save(self, path):
        """Test loading from a missing file returns None."""
        store = KeyValueStore("user_preferences", path, UserPreferences)
        assert store.load() is None

    def test_save_and_load(self, path):
        """Test a saved document loads back equal."""
        store = KeyValueStore("user_preferences", path, UserPreferences)
        prefs = UserPreferences(theme="dark", notifications=False, language="fr")

        store.save(prefs)

        assert store.load() == prefs

    def test_keys_share_one_file(self, path):
        """Test two stores on the same file keep separate documents."""
        prefs = KeyValueStore("user_preferences", path, UserPreferences)
        other = KeyValueStore("guest_preferences", path, UserPreferences)

        prefs.save(UserPreferences(theme="dark"))
        other.save(UserPreferences(theme="solarized"))

        assert prefs.load().theme == "dark"
        assert other.load().theme == "solarized"
        assert sorted(json.loads(path.read_text())) == ["guest_preferences", "user_preferences"]

    def test_delete(self, path):
        """Test delete removes only this key and tolerates absence."""
        prefs = KeyValueStore("user_preferences", path, UserPreferences)
        other = KeyValueStore("guest_preferences", path, UserPreferences)
        prefs.save(UserPreferences())
        other.save(UserPreferences())

        prefs.delete()
        prefs.delete()

        assert prefs.load() is None
        assert other.load() is not None

    def test_wrong_type_rejected(self, path):
        """Test saving a different model raises CacheEncodeError."""
        store = KeyValueStore("user_preferences", path, UserPreferences)
        with pytest.raises(CacheEncodeError):
            store.save(SecureData(api_key="k", refresh_token="t"))

    def test_corrupt_file(self, path):
        """Test a corrupt store file raises CacheDecodeError."""
        path.parent.mkdir(parents=True)
        path.write_text("[1, 2")
        store = KeyValueStore("user_preferences", path, UserPreferences)
        with pytest.raises(CacheDecodeError):
            store.load()

    def test_invalid_document(self, path):
        """Test a document failing validation raises CacheDecodeError."""
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"user_preferences": json.dumps({"notifications": "maybe"})}))
        store = KeyValueStore("user_preferences", path, UserPreferences)
        with pytest.raises(CacheDecodeError):
            store.load()


class TestFileStore:
    """Test cases for FileStore."""

    def test_round_trip(self, tmp_path):
        """Test app data survives save and load."""
        store = FileStore(tmp_path / "app_data.json", AppData)
        data = AppData(
            last_sync_date=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
            cached_items={"EURUSD": "1.09"},
        )

        store.save(data)

        assert store.load() == data

    def test_load_missing(self, tmp_path):
        """Test a missing file loads as None."""
        assert FileStore(tmp_path / "none.json", AppData).load() is None

    def test_delete_missing_raises(self, tmp_path):
        """Test deleting a file that does not exist raises CacheDeleteError."""
        store = FileStore(tmp_path / "none.json", AppData)
        with pytest.raises(CacheDeleteError):
            store.delete()

    def test_delete(self, tmp_path):
        """Test delete removes the file."""
        path = tmp_path / "app_data.json"
        store = FileStore(path, AppData)
        store.save(AppData())
        store.delete()
        assert not path.exists()

    def test_write_failure_survives_cleanup_error(self, tmp_path):
        """Test a failing temp-file cleanup does not mask the write error."""
        store = FileStore(tmp_path / "app_data.json", AppData)

        with patch("tiered_cache.persistence.stores.os.replace", side_effect=OSError("disk full")), \
                patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            with pytest.raises(CacheWriteError) as exc_info:
                store.save(AppData())

        assert "disk full" in exc_info.value.message
        assert not (tmp_path / "app_data.json").exists()


class TestSecretStore:
    """Test cases for SecretStore."""

    @pytest.fixture
    def path(self, tmp_path):
        return tmp_path / "secrets.json"

    @pytest.fixture
    def secret(self):
        return SecureData(api_key="sk-live-123", refresh_token="refresh-456")

    def test_requires_master_key(self, path):
        """Test construction without a master key fails."""
        with pytest.raises(SecretStoreError):
            SecretStore("secure_data", "svc", path, SecureData, master_key=None)

    def test_save_and_load(self, path, secret):
        """Test a secret loads back with the same master key."""
        store = SecretStore("secure_data", "svc", path, SecureData, master_key="master")
        store.save(secret)

        reopened = SecretStore("secure_data", "svc", path, SecureData, master_key="master")
        assert reopened.load() == secret

    def test_ciphertext_hides_plaintext(self, path, secret):
        """Test the file does not contain the secret values."""
        SecretStore("secure_data", "svc", path, SecureData, master_key="master").save(secret)

        content = path.read_text()
        assert "sk-live-123" not in content
        assert "refresh-456" not in content

    def test_wrong_master_key(self, path, secret):
        """Test decrypting with another master key raises SecretStoreError."""
        SecretStore("secure_data", "svc", path, SecureData, master_key="master").save(secret)

        with pytest.raises(SecretStoreError) as exc_info:
            SecretStore("secure_data", "svc", path, SecureData, master_key="other").load()
        assert exc_info.value.code == "SECRET_STORE_ERROR"

    def test_save_with_wrong_master_key(self, path, secret):
        """Test saving with another master key is refused and keeps existing secrets readable."""
        SecretStore("first", "svc", path, SecureData, master_key="master").save(secret)

        with pytest.raises(SecretStoreError) as exc_info:
            SecretStore("second", "svc", path, SecureData, master_key="other").save(secret)

        assert exc_info.value.code == "SECRET_STORE_ERROR"
        assert "second" not in json.loads(path.read_text())["items"]["svc"]
        assert SecretStore("first", "svc", path, SecureData, master_key="master").load() == secret

    def test_save_replaces(self, path, secret):
        """Test saving twice keeps only the latest item."""
        store = SecretStore("secure_data", "svc", path, SecureData, master_key="master")
        store.save(secret)
        store.save(SecureData(api_key="new", refresh_token="new"))

        assert store.load().api_key == "new"

    def test_delete_missing_is_not_an_error(self, path, secret):
        """Test delete of an absent item succeeds."""
        store = SecretStore("secure_data", "svc", path, SecureData, master_key="master")
        store.delete()
        store.save(secret)
        store.delete()
        assert store.load() is None

    def test_accounts_are_independent(self, path, secret):
        """Test items under different accounts do not overwrite each other."""
        first = SecretStore("first", "svc", path, SecureData, master_key="master")
        second = SecretStore("second", "svc", path, SecureData, master_key="master")
        first.save(secret)
        second.save(SecureData(api_key="b", refresh_token="b"))

        assert first.load() == secret
        assert second.load().api_key == "b"


class TestDataStoreManager:
    """Test cases for DataStoreManager."""

    @pytest.fixture
    def manager(self, tmp_path):
        config = CacheConfig(data_dir=tmp_path / "data", master_key="master")
        return DataStoreManager(config)

    def test_preferences(self, manager):
        """Test preferences round trip through the key/value store."""
        assert manager.load_user_preferences() is None
        manager.save_user_preferences(UserPreferences(language="de"))
        assert manager.load_user_preferences().language == "de"

    def test_app_data(self, manager):
        """Test app data round trip through the file store."""
        manager.save_app_data(AppData(cached_items={"a": "b"}))
        assert manager.load_app_data().cached_items == {"a": "b"}

    def test_secure_data(self, manager):
        """Test secure data round trip through the secret store."""
        manager.save_secure_data(SecureData(api_key="k", refresh_token="t"))
        assert manager.load_secure_data().api_key == "k"
        manager.delete_secure_data()
        assert manager.load_secure_data() is None

    def test_secure_data_without_master_key(self, tmp_path):
        """Test the secret store is only required when used."""
        manager = DataStoreManager(CacheConfig(data_dir=tmp_path, master_key=None))
        manager.save_user_preferences(UserPreferences())
        with pytest.raises(SecretStoreError):
            manager.load_secure_data()
