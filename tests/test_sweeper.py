import asyncio

from services.sweeper import start_sweeps, stop_sweeps


def test_sweeps_run_until_stopped():
    calls = []

    def sweep():
        calls.append("swept")
        return 0

    def broken():
        raise RuntimeError("sweep failed")

    async def scenario():
        tasks = start_sweeps([(0.01, sweep, "fast"), (0.01, broken, "broken")])
        await asyncio.sleep(0.1)
        await stop_sweeps(tasks)
        return tasks

    tasks = asyncio.run(scenario())

    assert len(calls) >= 2
    assert all(task.cancelled() for task in tasks)
