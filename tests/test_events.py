from dataclasses import replace

from chronicle.events import (
    MAX_POOL_SIZE,
    Event,
    EventCategory,
    EventSource,
    VillageSummary,
    draw_event,
    fixed_events,
    needs_replenish,
    replenish_pool,
    template_event,
)
from chronicle.rules import Season

from conftest import ScriptedRandom, make_villager


def event(eid, source=EventSource.FIXED, weight=1.0):
    return Event(eid, f"event {eid}", EventCategory.INFO, source=source, weight=weight)


def test_fixed_events_are_deterministic_property(small_village):
    """Property: the same snapshot always derives the same fixed events."""
    assert fixed_events(small_village) == fixed_events(small_village)
    ids = [e.id for e in fixed_events(small_village)]
    assert len(ids) == len(set(ids))
    assert f"fixed-{small_village.tick}-season" in ids


def test_fixed_events_follow_mood(small_village):
    cheerful = replace(small_village, population=tuple(make_villager(f"h{i}", happiness=95) for i in range(5)))
    sources = {e.source for e in fixed_events(cheerful)}
    assert EventSource.HAPPINESS in sources
    content = replace(small_village, population=tuple(make_villager(f"m{i}", happiness=70) for i in range(5)))
    assert EventSource.HAPPINESS not in {e.source for e in fixed_events(content)}


def test_fixed_and_happiness_weights(small_village):
    for e in fixed_events(small_village):
        assert e.source in (EventSource.FIXED, EventSource.HAPPINESS)
        assert e.weight == (1.5 if e.source == EventSource.HAPPINESS else 1.0)


def test_template_event_stands_in_for_external_events():
    summary = VillageSummary(Season.WINTER, 10, 30, 20)
    e = template_event(summary, ScriptedRandom(), "ai-x")
    assert e.id == "ai-x"
    assert e.source == EventSource.EXTERNAL
    assert e.weight == 2.0


def test_weighted_draw():
    pool = (event("f"), event("x", EventSource.EXTERNAL, 2.0))
    chosen, rest = draw_event(pool, ScriptedRandom([0.2]))
    assert chosen.id == "f"
    assert rest == (pool[1],)
    chosen, rest = draw_event(pool, ScriptedRandom([0.5]))
    assert chosen.id == "x"
    assert rest == (pool[0],)


def test_draw_from_empty_or_weightless_pool():
    assert draw_event((), ScriptedRandom()) == (None, ())
    zero = (event("z", weight=0.0),)
    assert draw_event(zero, ScriptedRandom()) == (None, zero)


def test_replenish_prunes_stale_fixed_events_only_when_refreshing():
    pool = (event("old"), event("ai-1", EventSource.EXTERNAL, 2.0))
    appended = replenish_pool(pool, external=(event("ai-2", EventSource.EXTERNAL, 2.0),))
    assert [e.id for e in appended] == ["old", "ai-1", "ai-2"]
    refreshed = replenish_pool(pool, fixed=(event("new"),))
    assert [e.id for e in refreshed] == ["ai-1", "new"]


def test_replenish_deduplicates_and_caps_the_pool():
    pool = tuple(event(f"ai-{i}", EventSource.EXTERNAL, 2.0) for i in range(MAX_POOL_SIZE))
    grown = replenish_pool(pool, external=(pool[0], event("ai-new", EventSource.EXTERNAL, 2.0)))
    assert len(grown) == MAX_POOL_SIZE
    assert grown[-1].id == "ai-new"
    assert grown[0].id == "ai-1"


def test_low_water_mark():
    assert needs_replenish(())
    assert needs_replenish(tuple(event(str(i)) for i in range(4)))
    assert not needs_replenish(tuple(event(str(i)) for i in range(5)))


def test_event_round_trips_through_dict():
    e = Event("a", "msg", EventCategory.DANGER, -10, 5, -3, -1, EventSource.EXTERNAL, 2.0)
    assert Event.from_dict(e.to_dict()) == e
