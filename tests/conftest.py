from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

# Set env before any receipt_reader imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.receipt_reader_test.db")
os.environ.setdefault("LOCAL_STORAGE_PATH", ".tmp_storage_test")
for _key in ("GEMINI_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "OPENROUTER_API_KEY"):
    os.environ[_key] = ""


@pytest.fixture(autouse=True)
def _reset_db_and_storage() -> None:
    import receipt_reader.models  # noqa: F401
    from receipt_reader.core.db import engine
    from receipt_reader.core.models import Base

    # Reset storage cache and directory
    import receipt_reader.core.storage as storage_mod

    storage_mod._storage = None

    storage_path = Path(os.environ["LOCAL_STORAGE_PATH"])
    if storage_path.exists():
        shutil.rmtree(storage_path)

    # Reset DB schema
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield
