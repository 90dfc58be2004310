from dataclasses import asdict, fields, is_dataclass

import threading
from copy import deepcopy
from typing import Any, Generic, TypeVar

T = TypeVar("T")


# ---------- Thread-safe config wrapper ----------
class ThreadSafeConfig(Generic[T]):
    """
    Lock-guarded holder for one config dataclass.

    Trackers take a deep copy via get(), so editing the shared defaults
    (e.g. from the live app) never changes a run that is already in progress.
    """

    def __init__(self, data_obj: T):
        if not is_dataclass(data_obj):
            raise TypeError(f"ThreadSafeConfig expects a dataclass instance, got {type(data_obj).__name__}")
        self._lock = threading.Lock()
        self._data = data_obj
        self._field_names = {f.name for f in fields(data_obj)}

    def _check_field(self, field: str):
        if field not in self._field_names:
            raise AttributeError(f"{type(self._data).__name__} has no field '{field}'")

    def get(self) -> T:
        with self._lock:
            return deepcopy(self._data)

    def set(self, field: str, value: Any):
        self._check_field(field)
        with self._lock:
            setattr(self._data, field, value)

    def update(self, **kwargs):
        for k in kwargs:
            self._check_field(k)
        with self._lock:
            for k, v in kwargs.items():
                setattr(self._data, k, v)

    def replace(self, data_obj: T):
        """Swap in a whole new config object (e.g. after reloading the TOML)."""
        with self._lock:
            self._data = data_obj
            self._field_names = {f.name for f in fields(data_obj)}

    def get_field(self, field: str):
        self._check_field(field)
        with self._lock:
            return getattr(self._data, field)

    def get_raw(self) -> T:  # non-deepcopy for internal save use
        with self._lock:
            return self._data

    def asdict(self) -> dict[str, Any]:
        with self._lock:
            return asdict(self._data)
