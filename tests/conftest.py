from __future__ import annotations

from pathlib import Path

import pytest

from agentdist.persistence import DistributionStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def store(tmp_path: Path):
    with DistributionStore(tmp_path / "agentdist.sqlite") as opened:
        yield opened
