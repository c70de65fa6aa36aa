import asyncio

from wa_recall import maintenance


def test_periodic_task_runs_repeatedly_and_survives_errors():
    calls = []

    async def tick():
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("first tick fails")

    async def scenario():
        task = await maintenance.startup(tick, 0.01)
        await asyncio.sleep(0.05)
        await maintenance.shutdown(task)
        return task

    task = asyncio.run(scenario())

    assert len(calls) >= 2
    assert task.cancelled()


def test_first_run_waits_one_interval():
    calls = []

    async def tick():
        calls.append(1)

    async def scenario():
        task = await maintenance.startup(tick, 60)
        await asyncio.sleep(0.01)
        await maintenance.shutdown(task)

    asyncio.run(scenario())

    assert calls == []


def test_shutdown_tolerates_none():
    asyncio.run(maintenance.shutdown(None))
