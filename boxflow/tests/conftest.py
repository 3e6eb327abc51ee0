from __future__ import annotations

from typing import Iterator

import pytest

from boxflow.app.core.config import Settings
from boxflow.app.engine.context import BoxContext, destroy_lib_context, has_active_context, lib_context


@pytest.fixture(autouse=True)
def _release_leaked_context() -> Iterator[None]:
    yield
    if has_active_context():
        destroy_lib_context()


@pytest.fixture
def context() -> Iterator[BoxContext]:
    with lib_context(Settings()) as active:
        yield active
