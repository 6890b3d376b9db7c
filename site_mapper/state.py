"""site_mapper.state: run state kept between ``generate --keep-state`` and ``finalize``.

The store is a flat key/value map persisted as one JSON document. Values must be
JSON serialisable; :meth:`CrawlResult.to_dict` produces such a value.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Protocol, Union

from site_mapper.logger import logger

__all__ = ["CRAWL_RESULT_KEY", "RunStateStore", "JsonRunStateStore"]

CRAWL_RESULT_KEY = "crawl_result"


class RunStateStore(Protocol):
    def put(self, key: str, value: Any) -> None: ...

    def get(self, key: str, default: Any = None) -> Any: ...

    def forget(self, key: str) -> None: ...


class JsonRunStateStore:
    """:class:`RunStateStore` backed by a JSON file, rewritten atomically on every change."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Corrupt run state file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise TypeError(f"Run state root must be an object, got {type(data).__name__}")
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)

    def put(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)
        logger.debug("Run state %r saved to %s", key, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def forget(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)
            logger.debug("Run state %r removed from %s", key, self.path)
