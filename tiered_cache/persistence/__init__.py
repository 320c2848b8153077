"""
Typed document persistence: key/value, file and encrypted secret stores.
"""

from .manager import DataStoreManager
from .models import AppData, SecureData, UserPreferences
from .stores import DataStore, FileStore, KeyValueStore, SecretStore

__all__ = [
    "AppData",
    "DataStore",
    "DataStoreManager",
    "FileStore",
    "KeyValueStore",
    "SecretStore",
    "SecureData",
    "UserPreferences",
]
