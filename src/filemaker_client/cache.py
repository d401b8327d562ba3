"""Per-client layout cache."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from filemaker_client.layout import Layout

logger = logging.getLogger(__name__)


class LayoutCache:
    """Layouts by name, populated lazily.

    ``get_or_populate`` checks, loads and stores under one lock so two
    threads asking for the same uncached layout trigger a single fetch. A
    failed load stores nothing and is retried on the next call.
    """

    def __init__(self) -> None:
        self._layouts: dict[str, Layout] = {}
        self._lock = threading.RLock()

    def __contains__(self, name: str) -> bool:
        return name in self._layouts

    def __len__(self) -> int:
        return len(self._layouts)

    def get(self, name: str) -> Layout | None:
        return self._layouts.get(name)

    def set(self, name: str, layout: Layout) -> None:
        with self._lock:
            self._layouts[name] = layout

    def get_or_populate(self, name: str, loader: Callable[[], Layout]) -> Layout:
        with self._lock:
            layout = self._layouts.get(name)
            if layout is None:
                logger.debug("Layout cache miss: %s", name)
                layout = loader()
                self._layouts[name] = layout
            return layout

    def invalidate(self, name: str) -> None:
        with self._lock:
            self._layouts.pop(name, None)

    def clear(self) -> None:
        with self._lock:
            self._layouts.clear()
