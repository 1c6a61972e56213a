"""Tests for ProgressiveOrchestrator."""

import pytest

from backends.errors import TransientServiceError
from backends.job_poller import JobPoller
from config import ProgressiveConfig
from conftest import FakeAdapter
from generation_models import BackendId, ImageHandle, Quality
from orchestrator import ProgressiveOrchestrator
from service_selector import ServicePriority, ServiceSelector

SEQUENCE = [Quality.LOW, Quality.MEDIUM, Quality.HIGH]


def make_orchestrator(adapter, polling_config, sleep, sequence=SEQUENCE, delay=0.2):
    selector = ServiceSelector(
        {adapter.backend_id: adapter},
        ServicePriority([adapter.backend_id]),
        JobPoller(polling_config, sleep=sleep),
    )
    return ProgressiveOrchestrator(selector, sequence=sequence, delay=delay, sleep=sleep)


class Recorder:
    """Collects published images as (kind, quality, slot) tuples."""

    def __init__(self):
        self.events = []

    def initial(self, image):
        self.events.append(("initial", image.quality, image.slot_id))

    def upgrade(self, image):
        self.events.append(("upgrade", image.quality, image.slot_id))

    @property
    def kinds(self):
        return [(kind, quality) for kind, quality, _ in self.events]


class TestProgressiveOrchestrator:
    """Tests for progressive runs."""

    @pytest.mark.asyncio
    async def test_one_initial_then_upgrades_in_order(self, polling_config, sleep):
        adapter = FakeAdapter(BackendId.LOCAL_SD)
        orchestrator = make_orchestrator(adapter, polling_config, sleep)
        recorder = Recorder()

        result = await orchestrator.run("a lake", recorder.initial, recorder.upgrade)
        await orchestrator.wait_for_background()

        assert result.success
        assert recorder.kinds == [
            ("initial", Quality.LOW),
            ("upgrade", Quality.MEDIUM),
            ("upgrade", Quality.HIGH),
        ]
        assert {slot for _, _, slot in recorder.events} == {result.slot_id}

    @pytest.mark.asyncio
    async def test_run_returns_before_upgrades(self, polling_config, sleep):
        adapter = FakeAdapter(BackendId.LOCAL_SD)
        orchestrator = make_orchestrator(adapter, polling_config, sleep)
        recorder = Recorder()

        result = await orchestrator.run("a lake", recorder.initial, recorder.upgrade)

        assert recorder.kinds == [("initial", Quality.LOW)]
        assert result.background is not None
        assert orchestrator.pending_upgrades == 1

        await orchestrator.wait_for_background()
        assert orchestrator.pending_upgrades == 0
        assert await result.background == 2

    @pytest.mark.asyncio
    async def test_first_success_becomes_initial(self, polling_config, sleep):
        handle = ImageHandle.from_url("https://x/1.png")
        adapter = FakeAdapter(BackendId.LOCAL_SD, results=[TransientServiceError("down"), handle, handle])
        orchestrator = make_orchestrator(adapter, polling_config, sleep)
        recorder = Recorder()

        result = await orchestrator.run("a lake", recorder.initial, recorder.upgrade)
        await orchestrator.wait_for_background()

        assert result.initial.quality == Quality.MEDIUM
        assert recorder.kinds == [("initial", Quality.MEDIUM), ("upgrade", Quality.HIGH)]
        assert len(result.failures) == 1

    @pytest.mark.asyncio
    async def test_upgrade_failure_is_not_fatal(self, polling_config, sleep):
        handle = ImageHandle.from_url("https://x/1.png")
        adapter = FakeAdapter(BackendId.LOCAL_SD, results=[handle, TransientServiceError("down"), handle])
        orchestrator = make_orchestrator(adapter, polling_config, sleep)
        recorder = Recorder()

        await orchestrator.run("a lake", recorder.initial, recorder.upgrade)
        await orchestrator.wait_for_background()

        assert recorder.kinds == [("initial", Quality.LOW), ("upgrade", Quality.HIGH)]
        assert len(adapter.calls) == 3

    @pytest.mark.asyncio
    async def test_total_failure_terminates_with_report(self, polling_config, sleep):
        adapter = FakeAdapter(BackendId.LOCAL_SD, results=[TransientServiceError("down")])
        orchestrator = make_orchestrator(adapter, polling_config, sleep)
        recorder = Recorder()

        result = await orchestrator.run("a lake", recorder.initial, recorder.upgrade)
        await orchestrator.wait_for_background()

        assert result.success is False
        assert result.error
        assert result.initial is None
        assert result.background is None
        assert recorder.events == []
        assert [f.quality for f in result.failures] == SEQUENCE

    @pytest.mark.asyncio
    async def test_delay_between_levels_not_after_last(self, polling_config, sleep):
        orchestrator = make_orchestrator(FakeAdapter(BackendId.LOCAL_SD), polling_config, sleep, delay=0.2)

        await orchestrator.run("a lake")
        await orchestrator.wait_for_background()

        assert sleep.delays == [0.2, 0.2]

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_abort_run(self, polling_config, sleep):
        orchestrator = make_orchestrator(FakeAdapter(BackendId.LOCAL_SD), polling_config, sleep)
        upgrades = []

        def broken(image):
            raise RuntimeError("display failed")

        result = await orchestrator.run("a lake", broken, upgrades.append)
        await orchestrator.wait_for_background()

        assert result.success
        assert [image.quality for image in upgrades] == [Quality.MEDIUM, Quality.HIGH]

    @pytest.mark.asyncio
    async def test_async_callbacks(self, polling_config, sleep):
        orchestrator = make_orchestrator(FakeAdapter(BackendId.LOCAL_SD), polling_config, sleep)
        seen = []

        async def on_image(image):
            seen.append(image.is_upgrade)

        await orchestrator.run("a lake", on_image, on_image)
        await orchestrator.wait_for_background()

        assert seen == [False, True, True]

    @pytest.mark.asyncio
    async def test_single_level_has_no_background(self, polling_config, sleep):
        orchestrator = make_orchestrator(FakeAdapter(BackendId.LOCAL_SD), polling_config, sleep, sequence=[Quality.HIGH])

        result = await orchestrator.run("a lake")

        assert result.success
        assert result.background is None
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_events_stream_full_run(self, polling_config, sleep):
        handle = ImageHandle.from_url("https://x/1.png")
        adapter = FakeAdapter(BackendId.LOCAL_SD, results=[TransientServiceError("down"), handle])
        orchestrator = make_orchestrator(adapter, polling_config, sleep)

        images = [image async for image in orchestrator.events("a lake")]

        assert [(i.quality, i.is_upgrade) for i in images] == [(Quality.MEDIUM, False), (Quality.HIGH, True)]
        assert images[0].slot_id == images[1].slot_id

    @pytest.mark.asyncio
    async def test_cancel_background(self, polling_config, sleep):
        orchestrator = make_orchestrator(FakeAdapter(BackendId.LOCAL_SD), polling_config, sleep)

        await orchestrator.run("a lake")
        assert orchestrator.cancel_background() == 1
        await orchestrator.wait_for_background()
        assert orchestrator.pending_upgrades == 0

    def test_disabled_progressive_is_single_medium(self, polling_config, sleep):
        selector = ServiceSelector({}, ServicePriority([]), JobPoller(polling_config, sleep=sleep))

        orchestrator = ProgressiveOrchestrator.from_config(selector, ProgressiveConfig(enabled=False))

        assert orchestrator.sequence == [Quality.MEDIUM]

    def test_from_config_sequence(self, polling_config, sleep):
        selector = ServiceSelector({}, ServicePriority([]), JobPoller(polling_config, sleep=sleep))

        orchestrator = ProgressiveOrchestrator.from_config(selector, ProgressiveConfig(sequence=("LOW", "HIGH")))

        assert orchestrator.sequence == [Quality.LOW, Quality.HIGH]
        assert orchestrator.delay == 0.2
