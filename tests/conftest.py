"""Shared test fixtures for all test modules."""

import io
import sys
import tempfile
from pathlib import Path

import pytest
from PIL import Image

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from backends.base import BackendAdapter  # noqa: E402
from config import PollingConfig  # noqa: E402
from generation_models import BackendId, ImageHandle  # noqa: E402


def make_png(color: str = "red", size: tuple[int, int] = (4, 4)) -> bytes:
    """Create a tiny PNG image in memory."""
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class FakeAdapter(BackendAdapter):
    """Backend adapter replaying scripted results.

    Each entry of ``results`` is an ImageHandle to return or an exception to
    raise; the last entry repeats once the list is used up. ``jobs`` works
    the same way for ``fetch_job`` payloads.
    """

    def __init__(self, backend_id: BackendId, results=None, jobs=None, enabled: bool = True, rewrite_rejected=None):
        super().__init__(enabled=enabled, rewrite_rejected=rewrite_rejected)
        self.backend_id = backend_id
        self.results = list(results or [ImageHandle.inline(make_png())])
        self.jobs = list(jobs or [{"status": "processing"}])
        self.calls: list[tuple[str, object]] = []
        self.fetch_calls = 0
        self.closed = False

    @staticmethod
    def _next(items: list):
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def _generate_once(self, prompt, params):
        self.calls.append((prompt, params))
        return self._next(self.results)

    async def fetch_job(self, job_id):
        self.fetch_calls += 1
        return self._next(self.jobs)

    async def aclose(self):
        self.closed = True


class SleepRecorder:
    """Awaitable stand-in for asyncio.sleep that records delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)

    @property
    def total(self) -> float:
        return sum(self.delays)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def png_bytes():
    """Bytes of a small valid PNG."""
    return make_png()


@pytest.fixture
def sleep():
    """Instant sleep that records requested delays."""
    return SleepRecorder()


@pytest.fixture
def polling_config():
    """Default polling cadence (sleep is faked in tests)."""
    return PollingConfig()
