from __future__ import annotations

import asyncio
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient


# Ensure `import app.*` works when pytest chooses an import mode that
# doesn't automatically add the project root to sys.path.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    # Isolated sqlite ping store per test.
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("PINGMAP_DB_URL", f"sqlite+aiosqlite:///{db_path.as_posix()}")
    monkeypatch.setenv("PINGMAP_BATCH_ERROR_POLICY", "skip")
    monkeypatch.setenv("PINGMAP_MAX_BATCH_ITEMS", "50")

    from app.core.settings import get_settings

    get_settings.cache_clear()

    from app.db import session as db_session

    db_session.reset_engine()

    # Import models so Base.metadata is fully populated.
    import app.models  # noqa: F401

    from app.db.base import Base

    async def _init_schema() -> None:
        engine = db_session.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        # The engine is bound to this event loop; let the app build its own.
        await engine.dispose()

    asyncio.run(_init_schema())
    db_session.reset_engine()

    from app.main import create_app

    app = create_app()
    return TestClient(app)
