"""
Data store manager wiring the example documents to their stores.
"""

from typing import Optional

from shared.config import CacheConfig, get_config
from shared.logging import get_logger

from .models import AppData, SecureData, UserPreferences
from .stores import FileStore, KeyValueStore, SecretStore

PREFERENCES_FILE = "preferences.json"
APP_DATA_FILE = "app_data.json"
SECRET_SERVICE = "tiered-cache"


class DataStoreManager:
    """Preferences in the key/value store, app data in a file, secrets encrypted."""

    def __init__(self, config: Optional[CacheConfig] = None):
        self.config = config or get_config()
        self.logger = get_logger("tiered_cache.persistence.manager")
        data_dir = self.config.data_dir

        self.preferences_store = KeyValueStore("user_preferences", data_dir / PREFERENCES_FILE, UserPreferences)
        self.app_data_store = FileStore(data_dir / APP_DATA_FILE, AppData)
        self._secret_store: Optional[SecretStore] = None

    @property
    def secret_store(self) -> SecretStore:
        """Created on first use, since it needs a master key."""
        if self._secret_store is None:
            self._secret_store = SecretStore(
                account="secure_data",
                service=SECRET_SERVICE,
                path=self.config.data_dir / self.config.secrets_file,
                model=SecureData,
                master_key=self.config.master_key,
            )
        return self._secret_store

    def save_user_preferences(self, preferences: UserPreferences) -> None:
        self.preferences_store.save(preferences)

    def load_user_preferences(self) -> Optional[UserPreferences]:
        return self.preferences_store.load()

    def save_app_data(self, data: AppData) -> None:
        self.app_data_store.save(data)

    def load_app_data(self) -> Optional[AppData]:
        return self.app_data_store.load()

    def save_secure_data(self, data: SecureData) -> None:
        self.secret_store.save(data)

    def load_secure_data(self) -> Optional[SecureData]:
        return self.secret_store.load()

    def delete_secure_data(self) -> None:
        self.secret_store.delete()
