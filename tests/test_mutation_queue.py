"""Tests for serial mutation execution."""

import asyncio

import pytest

from mutation_queue import MutationQueue


class TestMutationQueue:
    """Ordering, results and failure isolation."""

    @pytest.mark.asyncio
    async def test_mutations_never_interleave(self):
        queue = MutationQueue()
        events = []

        def step(name):
            async def mutation():
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")
            return mutation

        await asyncio.gather(queue.enqueue(step("a")), queue.enqueue(step("b")), queue.enqueue(step("c")))

        assert events == ["a-start", "a-end", "b-start", "b-end", "c-start", "c-end"]

    @pytest.mark.asyncio
    async def test_read_modify_write_keeps_every_update(self):
        queue = MutationQueue()
        state = {"items": []}

        def add(n):
            async def mutation():
                snapshot = list(state["items"])
                await asyncio.sleep(0)
                state["items"] = snapshot + [n]
            return mutation

        await asyncio.gather(*(queue.enqueue(add(n)) for n in range(25)))

        assert state["items"] == list(range(25))

    @pytest.mark.asyncio
    async def test_result_and_sync_mutations(self):
        queue = MutationQueue()

        assert await queue.enqueue(lambda: 42) == 42

    @pytest.mark.asyncio
    async def test_failure_reaches_caller_and_queue_continues(self):
        queue = MutationQueue()

        def broken():
            raise ValueError("bad mutation")

        failing = queue.enqueue(broken)
        following = queue.enqueue(lambda: "still runs")

        with pytest.raises(ValueError, match="bad mutation"):
            await failing
        assert await following == "still runs"

    @pytest.mark.asyncio
    async def test_mutation_enqueued_from_a_mutation_runs_afterwards(self):
        queue = MutationQueue()
        events = []

        def outer():
            queue.enqueue(lambda: events.append("inner"))
            events.append("outer-end")

        await queue.enqueue(outer)
        await queue.join()

        assert events == ["outer-end", "inner"]

    @pytest.mark.asyncio
    async def test_join_and_counters(self):
        queue = MutationQueue()
        assert not queue.busy

        for _ in range(3):
            queue.enqueue(lambda: asyncio.sleep(0))

        assert queue.busy
        assert queue.pending == 3

        await queue.join()

        assert not queue.busy
        assert queue.pending == 0
