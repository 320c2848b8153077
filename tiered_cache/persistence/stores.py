"""
Typed document stores.

Every store persists one pydantic model as JSON. ``load`` returns None when
nothing has been saved; corrupt content raises CacheDecodeError.
"""

import base64
import contextlib
import json
import os
import uuid
from pathlib import Path
from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import BaseModel, ValidationError

from shared.errors import (
    CacheDecodeError,
    CacheDeleteError,
    CacheEncodeError,
    CacheReadError,
    CacheWriteError,
    DirectoryCreationError,
    SecretStoreError,
)
from shared.logging import get_logger

ModelT = TypeVar("ModelT", bound=BaseModel)

PBKDF2_ITERATIONS = 100000


def _write_atomic(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` via a sibling temp file."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryCreationError(str(path.parent), details={"error": str(exc)}) from exc

    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        raise CacheWriteError(str(exc), details={"path": str(path)}) from exc


def _read_optional(path: Path) -> Optional[bytes]:
    """File contents, or None if it does not exist."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise CacheReadError(str(exc), details={"path": str(path)}) from exc


def _read_json_object(path: Path) -> Dict[str, Any]:
    raw = _read_optional(path)
    if raw is None:
        return {}
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise CacheDecodeError(str(exc), details={"path": str(path)}) from exc
    if not isinstance(data, dict):
        raise CacheDecodeError("Store file does not hold a JSON object", details={"path": str(path)})
    return data


class DataStore(Generic[ModelT]):
    """Base class: save, load and delete one document of ``model`` type."""

    def __init__(self, model: Type[ModelT]):
        self.model = model
        self.logger = get_logger(f"tiered_cache.persistence.{type(self).__name__}")

    def encode(self, item: ModelT) -> str:
        if not isinstance(item, self.model):
            raise CacheEncodeError(
                f"Expected {self.model.__name__}, got {type(item).__name__}",
                details={"model": self.model.__name__},
            )
        return item.model_dump_json()

    def decode(self, payload: Union[str, bytes]) -> ModelT:
        try:
            return self.model.model_validate_json(payload)
        except ValidationError as exc:
            raise CacheDecodeError(str(exc), details={"model": self.model.__name__}) from exc

    def save(self, item: ModelT) -> None:
        raise NotImplementedError

    def load(self) -> Optional[ModelT]:
        raise NotImplementedError

    def delete(self) -> None:
        raise NotImplementedError


class KeyValueStore(DataStore[ModelT]):
    """Named documents in one shared JSON file, like a preferences database.

    Several stores may point at the same file under different keys.
    """

    def __init__(self, key: str, path: Union[str, Path], model: Type[ModelT]):
        super().__init__(model)
        self.key = key
        self.path = Path(path)

    def save(self, item: ModelT) -> None:
        payload = self.encode(item)
        data = _read_json_object(self.path)
        data[self.key] = payload
        _write_atomic(self.path, json.dumps(data, indent=2, sort_keys=True).encode("utf-8"))
        self.logger.debug("Saved document", key=self.key, path=str(self.path))

    def load(self) -> Optional[ModelT]:
        payload = _read_json_object(self.path).get(self.key)
        if payload is None:
            return None
        if not isinstance(payload, str):
            raise CacheDecodeError("Stored document is not a JSON string", details={"key": self.key})
        return self.decode(payload)

    def delete(self) -> None:
        data = _read_json_object(self.path)
        if self.key not in data:
            return
        del data[self.key]
        _write_atomic(self.path, json.dumps(data, indent=2, sort_keys=True).encode("utf-8"))


class FileStore(DataStore[ModelT]):
    """One document per file."""

    def __init__(self, path: Union[str, Path], model: Type[ModelT]):
        super().__init__(model)
        self.path = Path(path)

    def save(self, item: ModelT) -> None:
        _write_atomic(self.path, self.encode(item).encode("utf-8"))
        self.logger.debug("Saved document", path=str(self.path))

    def load(self) -> Optional[ModelT]:
        raw = _read_optional(self.path)
        if raw is None:
            return None
        return self.decode(raw)

    def delete(self) -> None:
        """Remove the file; a missing file is an error."""
        try:
            self.path.unlink()
        except OSError as exc:
            raise CacheDeleteError(str(exc), details={"path": str(self.path)}) from exc


class SecretStore(DataStore[ModelT]):
    """Fernet-encrypted documents keyed by service and account.

    The file holds a random salt and the encrypted tokens; the Fernet key
    is derived from the master key with PBKDF2-HMAC-SHA256.
    """

    def __init__(
        self,
        account: str,
        service: str,
        path: Union[str, Path],
        model: Type[ModelT],
        master_key: Optional[str] = None,
    ):
        super().__init__(model)
        self.account = account
        self.service = service
        self.path = Path(path)
        self.master_key = master_key
        if not self.master_key:
            raise SecretStoreError("init", "Master key is required")

    def _create_fernet(self, salt: bytes) -> Fernet:
        """Derive the cipher for a given salt."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        key = base64.urlsafe_b64encode(kdf.derive(self.master_key.encode()))
        return Fernet(key)

    def _read(self, action: str) -> Dict[str, Any]:
        try:
            data = _read_json_object(self.path)
        except (CacheReadError, CacheDecodeError) as exc:
            raise SecretStoreError(action, exc.message, details={"path": str(self.path)}) from exc
        data.setdefault("items", {})
        return data

    def _salt(self, data: Dict[str, Any]) -> bytes:
        if "salt" not in data:
            data["salt"] = base64.b64encode(os.urandom(16)).decode("ascii")
        return base64.b64decode(data["salt"])

    def _check_key(self, fernet: Fernet, data: Dict[str, Any]) -> None:
        """Fail if an existing token cannot be decrypted with this master key."""
        for accounts in data["items"].values():
            for token in accounts.values():
                try:
                    fernet.decrypt(token.encode("ascii"))
                except InvalidToken as exc:
                    raise SecretStoreError(
                        "save", "Master key does not match existing secrets", details={"path": str(self.path)}
                    ) from exc
                return

    def _write(self, action: str, data: Dict[str, Any]) -> None:
        try:
            _write_atomic(self.path, json.dumps(data, indent=2, sort_keys=True).encode("utf-8"))
        except (CacheWriteError, DirectoryCreationError) as exc:
            raise SecretStoreError(action, exc.message, details={"path": str(self.path)}) from exc

    def save(self, item: ModelT) -> None:
        """Encrypt and store, replacing any existing item."""
        payload = self.encode(item)
        data = self._read("save")
        fernet = self._create_fernet(self._salt(data))
        self._check_key(fernet, data)
        token = fernet.encrypt(payload.encode("utf-8"))
        data["items"].setdefault(self.service, {})[self.account] = token.decode("ascii")
        self._write("save", data)
        self.logger.info("Stored secret", service=self.service, account=self.account)

    def load(self) -> Optional[ModelT]:
        data = self._read("load")
        token = data["items"].get(self.service, {}).get(self.account)
        if token is None or "salt" not in data:
            return None
        try:
            payload = self._create_fernet(self._salt(data)).decrypt(token.encode("ascii"))
        except InvalidToken as exc:
            raise SecretStoreError("load", "Secret could not be decrypted", details={"service": self.service}) from exc
        return self.decode(payload)

    def delete(self) -> None:
        """Remove the item; deleting a missing item is not an error."""
        data = self._read("delete")
        accounts = data["items"].get(self.service, {})
        if self.account not in accounts:
            return
        del accounts[self.account]
        if not accounts:
            del data["items"][self.service]
        self._write("delete", data)
