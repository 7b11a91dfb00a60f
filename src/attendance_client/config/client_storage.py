from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

THEME_KEY = "theme"
CAMERA_PERMISSION_KEY = "cameraPermission"
LOCATION_PERMISSION_KEY = "locationPermission"

DEFAULT_FLAGS: Dict[str, str] = {
	THEME_KEY: "light",
}


class StorageUnavailableError(OSError):
	"""Raised when the backing file cannot be read or written."""


@dataclass
class ClientStorage:
	"""Durable string key/value pairs kept in a JSON file."""

	path: Path
	_data: Dict[str, str] = field(init=False, default_factory=dict)
	_lock: threading.RLock = field(init=False, default_factory=threading.RLock, repr=False)

	def __post_init__(self) -> None:
		self.path = Path(self.path).expanduser()
		try:
			self.reload()
		except StorageUnavailableError as exc:
			logger.warning("Client storage unreadable, starting empty: %s", exc)

	# ------------------------------------------------------------------
	# Public API
	# ------------------------------------------------------------------
	@property
	def data(self) -> Dict[str, str]:
		with self._lock:
			return dict(self._data)

	def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
		with self._lock:
			if key in self._data:
				return self._data[key]
		return DEFAULT_FLAGS.get(key, default)

	def reload(self) -> None:
		loaded = self._load_json(self.path)

		with self._lock:
			self._data = {str(key): str(value) for key, value in loaded.items() if value is not None}

	def set(self, key: str, value: str) -> None:
		self.update({key: value})

	def update(self, values: Mapping[str, Optional[str]]) -> None:
		"""Write several keys at once; a ``None`` value removes the key."""

		with self._lock:
			new_data = dict(self._data)
			for key, value in values.items():
				if value is None:
					new_data.pop(key, None)
				else:
					new_data[key] = str(value)
			self._persist(new_data)
			self._data = new_data

	def remove(self, *keys: str) -> None:
		self.update({key: None for key in keys})

	def keys(self) -> Iterable[str]:
		with self._lock:
			return list(self._data)

	# ------------------------------------------------------------------
	# Internal helpers
	# ------------------------------------------------------------------
	def _persist(self, payload: Dict[str, str]) -> None:
		tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
		try:
			self.path.parent.mkdir(parents=True, exist_ok=True)
			with tmp_path.open("w", encoding="utf-8") as handle:
				json.dump(payload, handle, indent=2)
			tmp_path.replace(self.path)
		except OSError as exc:
			raise StorageUnavailableError(f"Cannot write {self.path}: {exc}") from exc

	@staticmethod
	def _load_json(path: Path) -> Dict[str, str]:
		if not path.exists():
			return {}
		try:
			with path.open("r", encoding="utf-8") as handle:
				loaded = json.load(handle)
		except (OSError, ValueError) as exc:
			raise StorageUnavailableError(f"Cannot read {path}: {exc}") from exc
		if not isinstance(loaded, dict):
			raise StorageUnavailableError(f"Unexpected content in {path}")
		return loaded
