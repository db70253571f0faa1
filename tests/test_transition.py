import random
from dataclasses import replace

import pytest

from chronicle.actions import (
    AdvanceTick,
    AssignJob,
    Construct,
    HoldFestival,
    InitEventPool,
    LoadState,
    ReplenishEventPool,
    Research,
    Restart,
    SetFoodPriority,
    StartGame,
    TogglePause,
    Trade,
    TriggerEvent,
    UpdateBio,
    UpdateEndingSummary,
)
from chronicle.endings import DESTRUCTION, REASON_EXTINCTION, REASON_MILITARY
from chronicle.events import Event, EventCategory, EventSource
from chronicle.military import MILITARY_THREATS
from chronicle.rules import (
    MAX_FOOD,
    STARTING_BUILDINGS,
    Activity,
    BuildingKind,
    Difficulty,
    FoodPriority,
    GameStatus,
    Job,
)
from chronicle.state import Resources, WorldState, freeze_buildings, initial_state
from chronicle.transition import advance_tick, apply_event, transition

from conftest import ScriptedRandom, make_villager

CALM = ScriptedRandom  # every roll 0.99: no theft, no births, no events


def even_tempered(state):
    """Average happiness of exactly 50 leaves event deltas unscaled."""
    return replace(state, population=tuple(replace(v, happiness=50) for v in state.population))


def with_buildings(state, **counts):
    base = dict(STARTING_BUILDINGS)
    for name, count in counts.items():
        base[BuildingKind[name.upper()]] = count
    return replace(state, buildings=freeze_buildings(base))


def external(eid, food=0, wood=0, gold=0, pop=0):
    return Event(eid, f"Something happened ({eid})", EventCategory.INFO, food, wood, gold, pop, EventSource.EXTERNAL, 2.0)


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------
def test_start_game_uses_difficulty_preset():
    state = transition(initial_state(), StartGame(Difficulty.HARD), random.Random(1))
    assert state.status == GameStatus.PLAYING
    assert state.tick == 1
    assert not state.paused
    assert len(state.population) == 15
    assert state.resources == Resources(food=300, wood=50)
    assert state.building(BuildingKind.HOUSE) == 4
    assert state.stats.peak_population == 15


def test_commands_are_ignored_outside_play():
    menu = initial_state()
    assert transition(menu, Construct(BuildingKind.HOUSE)) is menu
    assert transition(menu, AdvanceTick()) is menu


def test_paused_game_does_not_tick(playing_state):
    paused = transition(playing_state, TogglePause())
    assert paused.paused
    assert transition(paused, AdvanceTick(), CALM()) is paused
    assert not transition(paused, TogglePause()).paused


def test_restart_and_load(playing_state):
    assert transition(playing_state, Restart()).status == GameStatus.MENU
    assert transition(initial_state(), LoadState(playing_state)) is playing_state


# ----------------------------------------------------------------------
# The weekly tick
# ----------------------------------------------------------------------
def test_clock_advances_one_week_per_tick(small_village):
    state = small_village
    rng = random.Random(4)
    for expected in range(2, 15):
        state = transition(state, AdvanceTick(), rng)
        assert state.tick == expected


def test_starvation_with_no_farmers(playing_state):
    people = tuple(make_villager(f"v{i}", job=Job.UNEMPLOYED) for i in range(20))
    state = replace(playing_state, population=people, resources=Resources(food=0, wood=100, stone=30, gold=30))
    after = advance_tick(state, CALM())
    assert after.stats.starvation_days == 1
    assert after.resources.food == 0
    assert all(v.hunger == 20 for v in after.population)
    assert all(v.health == 95 for v in after.population)
    # Unguarded crowd (-1) and a full shortage (-10).
    assert all(v.happiness == 49 for v in after.population)


def test_well_fed_villagers_heal_and_drift_to_baseline(small_village):
    people = (
        make_villager("low", happiness=40, health=90, hunger=25),
        make_villager("high", happiness=60, health=99),
    )
    after = advance_tick(replace(small_village, population=people), CALM())
    low, high = after.population
    assert low.hunger == 0
    assert low.happiness == 42
    assert high.happiness == 59
    assert low.health == 92
    assert high.health == 100
    assert low.current_activity == Activity.WORKING
    assert after.stats.starvation_days == 0


def test_food_is_consumed_after_harvest(small_village):
    state = replace(small_village, resources=Resources(food=1000, wood=100))
    after = advance_tick(state, CALM())
    # Five farmers at 60 happiness: eff 1.24, spring 0.9 -> 178.56 food; 125 eaten.
    assert after.resources.food == 1053.56


def test_housing_cap_blocks_births(playing_state):
    def village(size):
        people = [make_villager(f"g{i}", age=25, job=Job.GUARD, happiness=90) for i in range(2)]
        people += [make_villager(f"u{i}", age=25, job=Job.UNEMPLOYED, happiness=90) for i in range(size - 2)]
        return replace(playing_state, population=tuple(people), resources=Resources(food=1000, wood=100))

    full = advance_tick(village(20), ScriptedRandom(default=0.0))
    assert len(full.population) == 20
    assert full.stats.total_births == 0

    roomy = advance_tick(village(19), ScriptedRandom(default=0.0))
    assert len(roomy.population) == 20
    assert roomy.stats.total_births == 1
    assert roomy.population[-1].job == Job.CHILD
    assert roomy.stats.peak_population >= 20


def test_unguarded_village_is_robbed_about_one_week_in_ten(playing_state):
    people = tuple(make_villager(f"v{i}", job=Job.FARMER) for i in range(15))
    state = replace(playing_state, population=people)
    trials = 2000
    robbed = 0
    for seed in range(trials):
        after = advance_tick(state, random.Random(seed))
        if any(entry.message.startswith("Lawlessness") for entry in after.log):
            robbed += 1
    assert 0.07 < robbed / trials < 0.13


def test_guarded_village_is_never_robbed(playing_state):
    people = tuple(make_villager(f"v{i}", job=Job.GUARD if i < 2 else Job.FARMER) for i in range(15))
    state = replace(playing_state, population=people)
    after = advance_tick(state, ScriptedRandom(default=0.0))
    assert not any(entry.message.startswith("Lawlessness") for entry in after.log)


def test_winter_burns_wood(small_village):
    state = replace(small_village, tick=40, resources=Resources(food=1000, wood=200))
    after = advance_tick(state, CALM())
    # 7 villagers x 7 wood, plus 2 wood of house upkeep.
    assert after.resources.wood == 149
    assert all(v.current_activity != Activity.FREEZING for v in after.population)


def test_empty_woodpile_freezes_everyone(small_village):
    state = replace(small_village, tick=40, resources=Resources(food=1000, wood=0))
    after = advance_tick(state, CALM())
    assert all(v.current_activity == Activity.FREEZING for v in after.population)
    assert all(v.health == 95 for v in after.population)
    assert any("freezing" in entry.message for entry in after.log)


def test_children_come_of_age_on_new_year(small_village):
    teen = make_villager("teen", age=15, job=Job.CHILD)
    state = replace(small_village, tick=52, population=small_village.population + (teen,))
    after = advance_tick(state, CALM())
    grown = next(v for v in after.population if v.id == "teen")
    assert grown.age == 16
    assert grown.job == Job.UNEMPLOYED
    assert any("come of age" in entry.message for entry in after.log)


def test_starved_to_death_ends_the_game(playing_state):
    last = make_villager("last", job=Job.UNEMPLOYED, health=1)
    state = replace(playing_state, population=(last,), resources=Resources())
    after = advance_tick(state, CALM())
    assert after.status == GameStatus.FINISHED
    assert after.ending_type == DESTRUCTION
    assert after.ending_reason == REASON_EXTINCTION
    assert after.population == ()
    assert after.stats.total_deaths == 1
    assert after.ending_summary


def test_unguarded_village_falls_to_invasion(small_village):
    state = replace(small_village, tick=15)
    after = advance_tick(state, CALM())
    assert after.status == GameStatus.FINISHED
    assert after.ending_type == DESTRUCTION
    assert after.ending_reason == REASON_MILITARY
    assert after.population == ()
    assert after.stats.total_deaths == 7
    assert after.tick == 15


def test_guards_repel_raiders(small_village):
    guards = tuple(replace(v, job=Job.GUARD) if v.id == "v0" else v for v in small_village.population)
    state = replace(small_village, tick=15, population=guards)
    after = advance_tick(state, CALM())
    assert after.status == GameStatus.PLAYING
    assert after.stats.invasions_repelled == 1
    assert len(after.population) == 7


def raid_target(state, tick, resources):
    """One guard and nineteen farmers: both raiders and brigands need two guards for twenty people."""
    people = (make_villager("g0", job=Job.GUARD),) + tuple(make_villager(f"f{i}") for i in range(19))
    return replace(state, tick=tick, population=people, resources=resources, event_pool=())


def threat_in_log(state):
    messages = " ".join(entry.message for entry in state.log)
    return next(t for t in MILITARY_THREATS[:2] if t.failure_message in messages)


def test_lost_raid_costs_villagers_and_stores(playing_state):
    stores = Resources(food=5000, wood=500, stone=30, gold=500)
    quiet = advance_tick(raid_target(playing_state, 14, stores), CALM())
    raided = advance_tick(raid_target(playing_state, 15, stores), CALM())
    threat = threat_in_log(raided)
    lost = -threat.failure_pop
    assert raided.status == GameStatus.PLAYING
    assert raided.stats.raids_survived == 1
    assert raided.stats.invasions_repelled == 0
    assert raided.stats.total_deaths == lost
    assert len(raided.population) == 20 - lost
    # Captives are taken from the back of the line.
    assert raided.population[0].id == "g0"
    assert raided.population[-1].id == f"f{18 - lost}"
    for resource in ("food", "wood", "gold"):
        loss = getattr(quiet.resources, resource) - getattr(raided.resources, resource)
        assert loss == pytest.approx(-threat.failure_deltas[resource])
    assert raided.resources.stone == quiet.resources.stone


def test_lost_raid_never_drives_stores_negative(playing_state):
    raided = advance_tick(raid_target(playing_state, 15, Resources(food=5000, wood=10, gold=20)), CALM())
    assert raided.stats.raids_survived == 1
    assert raided.resources.wood == 0
    assert raided.resources.gold == 0
    assert raided.resources.stone >= 0


def test_tenth_year_ends_in_victory(small_village):
    state = replace(small_village, tick=520)
    after = advance_tick(state, CALM())
    assert after.status == GameStatus.FINISHED
    assert after.ending_type == "Last Survivors"
    assert after.ending_reason is None
    assert after.tick == 520
    assert after.ending_summary
    assert transition(after, AdvanceTick(), CALM()) is after


def test_resources_stay_in_bounds_over_a_long_game():
    """Property: resources stay non-negative and villager stats stay in range."""
    rng = random.Random(2024)
    state = transition(initial_state(), StartGame(Difficulty.HARD), rng)
    state = transition(state, AssignJob(Job.FARMER, -3), rng)
    state = transition(state, AssignJob(Job.GUARD, 3), rng)
    for _ in range(200):
        previous = state
        state = transition(state, AdvanceTick(), rng)
        for name in ("food", "wood", "stone", "gold", "knowledge"):
            assert state.resources.get(name) >= 0
        assert state.resources.food <= MAX_FOOD
        for v in state.population:
            assert 0 <= v.happiness <= 100
            assert 0 < v.health <= 100
            assert 0 <= v.hunger <= 100
        if state.status == GameStatus.FINISHED:
            break
        assert state.tick == previous.tick + 1


def test_same_seed_same_game_property():
    """Property: a seeded random source replays the same game."""
    def play(seed):
        rng = random.Random(seed)
        state = transition(initial_state(), StartGame(Difficulty.NORMAL), rng)
        state = transition(state, InitEventPool((external("ai-0", food=30), external("ai-1", gold=-10))), rng)
        for _ in range(60):
            state = transition(state, AdvanceTick(), rng)
        return state.to_dict()

    assert play(77) == play(77)


def test_history_is_sampled(small_village):
    after = advance_tick(small_village, CALM())
    assert len(after.history) == 1
    assert after.history[0].tick == small_village.tick
    assert after.history[0].population == 7


# ----------------------------------------------------------------------
# Event pool
# ----------------------------------------------------------------------
def test_init_pool_mixes_fixed_and_external_events(playing_state):
    state = transition(playing_state, InitEventPool((external("ai-0"), external("ai-1"))))
    sources = [e.source for e in state.event_pool]
    assert sources.count(EventSource.EXTERNAL) == 2
    assert EventSource.FIXED in sources
    more = transition(state, ReplenishEventPool((external("ai-2"),)))
    assert len(more.event_pool) == len(state.event_pool) + 1


def test_triggered_event_is_consumed_once(small_village):
    state = replace(even_tempered(small_village), event_pool=(external("ai-0", food=-40, gold=-30),))
    once = transition(state, TriggerEvent("ai-0"), CALM())
    assert once.event_pool == ()
    assert once.resources.food == 260
    assert once.resources.gold == 0
    assert once.log[-1].kind == "ai"
    assert transition(once, TriggerEvent("ai-0"), CALM()) is once


def test_hard_difficulty_makes_losses_worse(small_village):
    state = replace(even_tempered(small_village), difficulty=Difficulty.HARD, resources=Resources(food=300, gold=100))
    after = apply_event(state, external("e", food=-40, gold=-30), CALM())
    assert after.resources.food == 240
    assert after.resources.gold == 55


def test_guards_limit_event_losses(small_village):
    people = tuple(replace(v, job=Job.GUARD, happiness=50) if v.id == "v0" else replace(v, happiness=50)
                   for v in small_village.population)
    state = replace(small_village, population=people, resources=Resources(food=300, gold=100))
    after = apply_event(state, external("e", food=-40, gold=-30), CALM())
    assert after.resources.food == 280
    assert after.resources.gold == 94
    assert "guards" in after.log[-1].message


def test_happy_villages_gain_more(small_village):
    people = tuple(replace(v, happiness=90) for v in small_village.population)
    state = replace(small_village, population=people)
    after = apply_event(state, external("e", food=100), CALM())
    assert after.resources.food == state.resources.food + 120


def test_event_population_changes(small_village):
    fewer = apply_event(small_village, external("e", pop=-2), CALM())
    assert [v.id for v in fewer.population] == [v.id for v in small_village.population[2:]]
    assert fewer.stats.total_deaths == 2
    more = apply_event(small_village, external("e", pop=1), CALM())
    assert len(more.population) == 8


def test_tick_draws_pooled_events(small_village):
    state = replace(small_village, tick=6, event_pool=(external("ai-0", gold=10),))
    after = advance_tick(state, ScriptedRandom([0.9, 0.1]))
    assert after.event_pool == ()
    assert any(entry.message.startswith("Something happened") for entry in after.log)


def test_tick_refreshes_fixed_events_when_pool_is_low(small_village):
    state = replace(small_village, tick=10, event_pool=())
    after = advance_tick(state, CALM())
    assert after.event_pool
    assert all(e.source != EventSource.EXTERNAL for e in after.event_pool)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------
def test_assign_and_dismiss_workers(playing_state):
    people = (
        make_villager("a", job=Job.UNEMPLOYED),
        make_villager("kid", age=9, job=Job.CHILD),
        make_villager("b", job=Job.UNEMPLOYED),
        make_villager("c", job=Job.UNEMPLOYED),
    )
    state = replace(playing_state, population=people)
    hired = transition(state, AssignJob(Job.GUARD, 2))
    assert [v.job for v in hired.population] == [Job.GUARD, Job.CHILD, Job.GUARD, Job.UNEMPLOYED]
    fired = transition(hired, AssignJob(Job.GUARD, -1))
    assert [v.job for v in fired.population] == [Job.UNEMPLOYED, Job.CHILD, Job.GUARD, Job.UNEMPLOYED]
    assert transition(state, AssignJob(Job.CHILD, 1)) is state
    assert transition(state, AssignJob(Job.FARMER, -1)) is state


def test_construct_needs_materials(playing_state):
    built = transition(playing_state, Construct(BuildingKind.HOUSE))
    assert built.building(BuildingKind.HOUSE) == 5
    assert built.resources.wood == 70
    assert built.resources.stone == 27
    assert transition(playing_state, Construct(BuildingKind.CATHEDRAL)) is playing_state


def test_research_spends_knowledge_once(playing_state):
    assert transition(playing_state, Research("tools_1")) is playing_state
    scholarly = replace(playing_state, resources=replace(playing_state.resources, knowledge=100))
    learned = transition(scholarly, Research("tools_1"))
    assert learned.has_tech("tools_1")
    assert learned.resources.knowledge == 20
    assert transition(learned, Research("tools_1")) is learned
    assert transition(scholarly, Research("no_such_tech")) is scholarly


def test_trade_needs_a_market(playing_state):
    assert transition(playing_state, Trade("food", "buy")) is playing_state
    market = with_buildings(playing_state, market=1)
    bought = transition(market, Trade("food", "buy"))
    assert bought.resources.food == market.resources.food + 10
    assert bought.resources.gold == market.resources.gold - 5
    sold = transition(market, Trade("stone", "sell"))
    assert sold.resources.stone == market.resources.stone - 10
    assert sold.resources.gold == market.resources.gold + 10
    broke = replace(market, resources=Resources(food=100))
    assert transition(broke, Trade("stone", "buy")) is broke
    assert transition(broke, Trade("stone", "sell")) is broke


def test_trade_prices_follow_modifiers(playing_state):
    market = with_buildings(playing_state, market=1)
    dear = replace(market, trade_price_modifiers={"food": 2.0, "wood": 1.0, "stone": 0.5})
    bought = transition(dear, Trade("food", "buy"))
    assert bought.resources.gold == dear.resources.gold - 10
    sold = transition(dear, Trade("stone", "sell"))
    assert sold.resources.gold == dear.resources.gold + 5


def test_festival(playing_state):
    assert transition(playing_state, HoldFestival()) is playing_state
    rich = replace(playing_state, resources=Resources(food=500, gold=100))
    party = transition(rich, HoldFestival())
    assert party.resources.gold == 40
    assert party.resources.food == 380
    assert party.stats.festivals_held == 1
    for before, after in zip(rich.population, party.population):
        assert after.happiness == min(100, before.happiness + 30)


def test_food_priority_switch(playing_state):
    changed = transition(playing_state, SetFoodPriority(FoodPriority.CHILDREN_FIRST))
    assert changed.food_priority == FoodPriority.CHILDREN_FIRST
    assert transition(changed, SetFoodPriority(FoodPriority.CHILDREN_FIRST)) is changed


def test_biography_updates(playing_state):
    target = playing_state.population[0]
    updated = transition(playing_state, UpdateBio(target.id, "Once fought a bear.", 1))
    assert updated.population[0].bio == "Once fought a bear."
    assert updated.population[0].last_bio_year == 1
    later = transition(updated, UpdateBio(target.id, "Married the miller.", 2))
    assert later.population[0].bio == "Once fought a bear. Married the miller."
    assert later.population[0].last_bio_year == 2
    assert transition(playing_state, UpdateBio("nobody", "?", 1)) is playing_state


def test_short_upkeep_warns_every_week(small_village):
    state = replace(small_village, tick=5, resources=Resources(food=1000))
    for _ in range(2):
        state = advance_tick(state, CALM())
        week = [entry.message for entry in state.log if entry.tick == state.tick - 1]
        assert "Not enough supplies to maintain the buildings!" in week


def test_ending_summary_only_after_the_end(playing_state, small_village):
    assert transition(playing_state, UpdateEndingSummary("x")) is playing_state
    finished = advance_tick(replace(small_village, tick=520), CALM())
    told = transition(finished, UpdateEndingSummary("They lived on."))
    assert told.ending_summary == "They lived on."


def test_state_round_trips_through_dict(small_village):
    after = advance_tick(small_village, random.Random(3))
    assert WorldState.from_dict(after.to_dict()).to_dict() == after.to_dict()
