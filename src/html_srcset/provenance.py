from __future__ import annotations

import datetime as _dt
import json
import threading
from pathlib import Path
from typing import Any

from .types import SourceSet


def now_utc_iso() -> str:
    return _dt.datetime.now(tz=_dt.timezone.utc).isoformat().replace("+00:00", "Z")


def append_jsonl(log_path: Path, payload: dict[str, Any]) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(payload, ensure_ascii=False) + "\n")


class VariantLog:
    """Appends one JSON line per rendered variant; safe to share between document tasks."""

    def __init__(self, log_path: Path):
        self.log_path = log_path
        self._lock = threading.Lock()

    def __call__(self, src: str, source_set: SourceSet) -> None:
        timestamp = now_utc_iso()
        with self._lock:
            for variant in source_set.variants:
                append_jsonl(
                    self.log_path,
                    {
                        "timestamp": timestamp,
                        "src": src,
                        "source_path": str(variant.source),
                        "width": variant.width,
                        "height": variant.height,
                        "format": variant.format.value,
                        "url": variant.url,
                        "output_path": str(variant.path),
                    },
                )
