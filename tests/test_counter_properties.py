from __future__ import annotations

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from durable_counter.services.counter import VALUE_KEY, CounterRegistry
from durable_counter.storage.memory import MemoryStore

# (is_increment, amount) pairs; amounts span well past 64-bit range
operations = st.lists(
    st.tuples(st.booleans(), st.integers(min_value=-(10**30), max_value=10**30)),
    max_size=40,
)


@settings(max_examples=75, deadline=None)
@given(start=st.one_of(st.none(), st.integers()), ops=operations)
def test_results_are_prefix_sums(start, ops):
    async def scenario():
        store = MemoryStore()
        if start is not None:
            await store.write("p", VALUE_KEY, start)
        counter = CounterRegistry(store).get("p")

        expected = start or 0
        for is_incr, amount in ops:
            expected += amount if is_incr else -amount
            result = await (counter.increment(amount) if is_incr else counter.decrement(amount))
            assert result == expected
        assert await counter.get() == expected

    asyncio.run(scenario())


@settings(max_examples=50, deadline=None)
@given(amounts=st.lists(st.integers(min_value=-1000, max_value=1000), min_size=1, max_size=30))
def test_concurrent_batch_ends_at_total(amounts):
    async def scenario():
        counter = CounterRegistry(MemoryStore()).get("batch")
        results = await asyncio.gather(*(counter.increment(a) for a in amounts))
        assert results[-1] == sum(amounts)
        assert await counter.get() == sum(amounts)

    asyncio.run(scenario())
