"""Shared fixtures: an in-memory encoder gateway and a throwaway database."""

import os
from typing import Callable, Optional, Sequence

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from streamforge.core.database import Base
from streamforge.modules.job import models as job_models  # noqa: F401
from streamforge.modules.transcoding.ffmpeg import EncodeResult, EncoderGateway, ProbeResult
from streamforge.modules.transcoding.storage import MediaStorage
from streamforge.modules.video import models as video_models  # noqa: F401


class FakeGateway(EncoderGateway):
    """Records every call and writes a small file for each successful encode.

    ``fail_when(args, output_path)`` decides which encodes fail.
    """

    def __init__(self, duration: Optional[float] = 120.0):
        self.duration = duration
        self.encodes: list[tuple[str, list[str], str]] = []
        self.probes: list[str] = []
        self.fail_when: Callable[[Sequence[str], str], bool] = lambda args, output: False

    @property
    def calls(self) -> int:
        return len(self.encodes) + len(self.probes)

    async def encode(self, input_path, args, output_path) -> EncodeResult:
        self.encodes.append((input_path, list(args), output_path))
        if self.fail_when(args, output_path):
            return EncodeResult(
                success=False,
                output_path=output_path,
                returncode=1,
                error_message="encoder exited with code 1",
            )
        os.makedirs(os.path.dirname(output_path), exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(b"fake")
        return EncodeResult(success=True, output_path=output_path, returncode=0)

    async def probe(self, input_path) -> ProbeResult:
        self.probes.append(input_path)
        if self.duration is None:
            return ProbeResult(success=False, error_message="Prober reported no usable duration")
        return ProbeResult(success=True, duration=self.duration, width=1920, height=1080)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def storage(tmp_path) -> MediaStorage:
    return MediaStorage(str(tmp_path / "media"), "/storage")


@pytest.fixture
def source_file(tmp_path) -> str:
    path = tmp_path / "uploads" / "source.mp4"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"not really a video")
    return str(path)


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'streamforge.db'}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker

    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session
