"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages,
and makes the shared descriptor builders in this directory importable.
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from protoql.store import Database

_tests_dir = Path(__file__).parent
_src_dir = _tests_dir.parent / "src"
for _path in (_src_dir, _tests_dir):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

# Force reimport of protoql modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("protoql"):
        del sys.modules[module_name]


@pytest.fixture(autouse=True)
def quiet_logging() -> None:
    """Route structlog through stdlib at WARNING so stdout stays clean."""
    from protoql.core.logging import configure_logging

    configure_logging(level="WARNING")


@pytest.fixture
def database() -> Generator[Database, None, None]:
    """Fresh in-memory store with the schema created."""
    from protoql.store import Database

    db = Database()
    db.ensure_schema()
    yield db
    db.close()


@pytest.fixture
def file_database(tmp_path: Path) -> Generator[Database, None, None]:
    """Fresh file-backed store with the schema created."""
    from protoql.store import Database

    db = Database(tmp_path / "protos.db")
    db.ensure_schema()
    yield db
    db.close()
