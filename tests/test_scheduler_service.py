import pytest

from emive_portal.services import preventive as preventive_service
from emive_portal.services import scheduler as scheduler_module


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.mark.anyio
async def test_start_registers_preventive_job_once():
    service = scheduler_module.SchedulerService()

    await service.start()
    try:
        await service.start()
        job = service._scheduler.get_job(scheduler_module.PREVENTIVE_JOB_ID)
        assert service.started is True
        assert job is not None
        assert job.max_instances == 1
        assert len(service._scheduler.get_jobs()) == 1
    finally:
        await service.stop()

    assert service.started is False


@pytest.mark.anyio
async def test_run_now_triggers_due_notifications(monkeypatch):
    calls = []

    async def fake_notify():
        calls.append(True)
        return 2

    monkeypatch.setattr(preventive_service, "notify_due_schedules", fake_notify)

    service = scheduler_module.SchedulerService()
    await service.run_now()

    assert calls == [True]
