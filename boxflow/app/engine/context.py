from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from boxflow.app.core.config import Settings, get_settings
from boxflow.app.engine.errors import ContextAlreadyActive, ForeignBoxError, NoActiveContext, StaleBoxError
from boxflow.app.engine.signals import SignalTable
from boxflow.app.engine.store import Box, BoxStore

logger = logging.getLogger(__name__)

_context_ids = itertools.count(1)
_state = threading.local()


class BoxContext:
    """Owns every box and signal built during one compilation.

    Destroying the context closes its store, after which any box created under
    it is rejected by the constructors and algebra.
    """

    def __init__(self, settings: Settings):
        self.id = next(_context_ids)
        self.settings = settings
        self.store = BoxStore(f"context-{self.id}")
        self.signals = SignalTable()
        # Cycle resolver memo: box index -> resolved box.
        self.resolved: dict[int, Box] = {}

    @property
    def alive(self) -> bool:
        return not self.store.closed

    def check(self, *boxes: Box) -> None:
        for box in boxes:
            if not isinstance(box, Box):
                raise TypeError(f"Expected a Box, got {type(box).__name__}")
            if box.store.closed:
                raise StaleBoxError(f"box #{box.index} belongs to a destroyed context ({box.store.name})")
            if box.store is not self.store:
                raise ForeignBoxError(
                    f"box #{box.index} belongs to {box.store.name}, not to the active {self.store.name}"
                )

    def close(self) -> None:
        logger.debug(
            "Destroying box context %s (%d boxes, %d signals)",
            self.id,
            len(self.store),
            len(self.signals),
        )
        self.store.close()
        self.signals.clear()
        self.resolved.clear()


def create_lib_context(settings: Settings | None = None) -> BoxContext:
    if getattr(_state, "context", None) is not None:
        raise ContextAlreadyActive()
    context = BoxContext(settings or get_settings())
    _state.context = context
    logger.debug("Created box context %s", context.id)
    return context


def destroy_lib_context() -> None:
    context = getattr(_state, "context", None)
    if context is None:
        raise NoActiveContext()
    _state.context = None
    context.close()


def get_active_context() -> BoxContext:
    context = getattr(_state, "context", None)
    if context is None:
        raise NoActiveContext()
    return context


def has_active_context() -> bool:
    return getattr(_state, "context", None) is not None


@contextmanager
def lib_context(settings: Settings | None = None) -> Iterator[BoxContext]:
    context = create_lib_context(settings)
    try:
        yield context
    finally:
        if getattr(_state, "context", None) is context:
            destroy_lib_context()
