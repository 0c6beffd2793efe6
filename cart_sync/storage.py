"""
Local Cart Storage

Durable client-side storage for the anonymous cart and its coupon. Two
independently keyed records are kept: the cart
`{items: [{productId, quantity, product}], lastUpdated}` and the coupon
`{id, code, discountValue}`.
"""

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .exceptions import StorageError
from .models import Cart, Coupon

logger = logging.getLogger(__name__)


class LocalCartStore(ABC):
    """Repository for the anonymous cart and coupon records"""

    def __init__(self, cart_key: str = "cart", coupon_key: str = "coupon"):
        self.cart_key = cart_key
        self.coupon_key = coupon_key
        self._opened = False

    async def open(self) -> None:
        """Prepare the store for use"""
        self._opened = True

    async def close(self) -> None:
        """Release resources held by the store"""
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    @abstractmethod
    async def _read(self, key: str) -> Optional[dict]:
        ...

    @abstractmethod
    async def _write(self, key: str, value: dict) -> None:
        ...

    @abstractmethod
    async def _delete(self, key: str) -> None:
        ...

    def _ensure_open(self) -> None:
        if not self._opened:
            raise StorageError(f"{type(self).__name__} is not open")

    async def load_cart(self) -> Optional[Cart]:
        """Load the stored cart, or None if there is none or it is unreadable"""
        self._ensure_open()
        raw = await self._read(self.cart_key)
        if raw is None:
            return None
        try:
            return Cart.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable stored cart: {e}")
            return None

    async def save_cart(self, cart: Cart) -> None:
        self._ensure_open()
        await self._write(self.cart_key, cart.to_wire())

    async def load_coupon(self) -> Optional[Coupon]:
        """Load the stored coupon, or None"""
        self._ensure_open()
        raw = await self._read(self.coupon_key)
        if raw is None:
            return None
        try:
            return Coupon.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable stored coupon: {e}")
            return None

    async def save_coupon(self, coupon: Coupon) -> None:
        self._ensure_open()
        await self._write(self.coupon_key, coupon.to_wire())

    async def clear_coupon(self) -> None:
        self._ensure_open()
        await self._delete(self.coupon_key)


class MemoryCartStore(LocalCartStore):
    """In-memory store, for tests and short-lived sessions"""

    def __init__(self, cart_key: str = "cart", coupon_key: str = "coupon"):
        super().__init__(cart_key=cart_key, coupon_key=coupon_key)
        self.records: dict[str, str] = {}

    async def _read(self, key: str) -> Optional[dict]:
        raw = self.records.get(key)
        return json.loads(raw) if raw is not None else None

    async def _write(self, key: str, value: dict) -> None:
        # Records are kept as JSON text, like browser storage
        self.records[key] = json.dumps(value)

    async def _delete(self, key: str) -> None:
        self.records.pop(key, None)


class JsonFileCartStore(LocalCartStore):
    """
    Store that keeps each record in `<directory>/<key>.json`.

    File access runs in a worker thread so the event loop is never blocked.
    """

    def __init__(
        self,
        directory: str,
        cart_key: str = "cart",
        coupon_key: str = "coupon",
    ):
        super().__init__(cart_key=cart_key, coupon_key=coupon_key)
        self.directory = Path(directory)

    async def open(self) -> None:
        try:
            await asyncio.to_thread(self.directory.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {self.directory}: {e}") from e
        await super().open()
        logger.debug(f"Opened cart storage at {self.directory}")

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    async def _read(self, key: str) -> Optional[dict]:
        return await asyncio.to_thread(self._read_file, self._path(key))

    async def _write(self, key: str, value: dict) -> None:
        await asyncio.to_thread(self._write_file, self._path(key), value)

    async def _delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete_file, self._path(key))

    def _read_file(self, path: Path) -> Optional[dict]:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupt storage record {path}: {e}")
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def _write_file(self, path: Path, value: dict) -> None:
        try:
            # Atomic replace
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

    def _delete_file(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot delete {path}: {e}") from e
