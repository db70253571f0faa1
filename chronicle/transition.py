"""The world-state transition function.

``transition(state, action, rng)`` is the only way a snapshot changes. It
never mutates its input and never raises for game conditions: a command
whose preconditions fail returns the very same snapshot, and disasters are
reported through ``status`` and ``ending_type``. All randomness comes from
the ``rng`` argument so a seeded ``random.Random`` reproduces a run.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import replace
from types import MappingProxyType
from typing import Callable, Dict, List, Optional, Tuple

from chronicle import actions as act
from chronicle.economy import (
    allocate_food,
    guard_coverage,
    happiness_baseline,
    happiness_recovery,
    maintenance_cost,
    needs_with_rates,
    produce,
    required_guards,
    seasonal_food_multiplier,
    security_ratio,
    shortage_ratio,
    trade_price_modifiers,
)
from chronicle.endings import DESTRUCTION, REASON_EXTINCTION, REASON_MILITARY, VICTORY, classify, fallback_summary
from chronicle.events import Event, EventSource, draw_event, fixed_events, needs_replenish, replenish_pool
from chronicle.military import invasion_due, resolve_invasion
from chronicle.numeric import clamp, round2
from chronicle.population import (
    Villager,
    average_happiness,
    count_job,
    generate_initial_population,
    generate_newborn,
    generate_villager,
)
from chronicle.rules import (
    ADULT_AGE,
    DIFFICULTY_SETTINGS,
    ELDER_AGE,
    FESTIVAL_COST,
    FESTIVAL_HAPPINESS,
    GAME_END_TICK,
    MAX_YEARS,
    STARTING_BUILDINGS,
    TECHS_BY_ID,
    TRADE_AMOUNT,
    TRADE_RATES,
    WEEKS_PER_YEAR,
    WINTER_WOOD_PER_CAPITA,
    Activity,
    BuildingKind,
    Difficulty,
    GameStatus,
    Job,
    Season,
    construction_cost,
    housing_capacity,
    season_for_tick,
)
from chronicle.state import (
    GameStats,
    LogEntry,
    Resources,
    WorldState,
    append_log,
    freeze_buildings,
    initial_state,
    record_history,
)

logger = logging.getLogger(__name__)

THEFT_CHANCE = 0.1
THEFT_MIN_POPULATION = 10
BIRTH_CHANCE_PER_CANDIDATE = 0.03
FERTILE_AGES = (18, 40)
FERTILE_HAPPINESS = 70
OLD_AGE_DEATH_RATE = 0.003
FREEZING_HEALTH_LOSS = 5
FREEZING_HAPPINESS_LOSS = 5
INSECURITY_HAPPINESS_LOSS = 1
MAX_HUNGER_GAIN = 20
MAX_HAPPINESS_LOSS = 10
MAX_HEALTH_LOSS = 5
HAPPINESS_REGRESSION = 1

EVENT_INTERVAL = 3
EVENT_FIRST_TICK = 4
EVENT_SKIP_CHANCE = 0.4
REPLENISH_INTERVAL = 10


def transition(state: WorldState, action: act.Action, rng: Optional[random.Random] = None) -> WorldState:
    """Apply one action and return the next snapshot."""
    rng = rng if rng is not None else random.Random()
    handler = _HANDLERS.get(type(action))
    if handler is None:
        logger.warning("Ignoring unknown action %r", action)
        return state
    if type(action) not in _ANY_STATUS and state.status != GameStatus.PLAYING:
        return state
    return handler(state, action, rng)


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------
def _start_game(state: WorldState, action: act.StartGame, rng: random.Random) -> WorldState:
    profile = DIFFICULTY_SETTINGS[action.difficulty]
    logger.info("Starting a new game on %s", action.difficulty.value)
    return replace(
        initial_state(),
        status=GameStatus.PLAYING,
        difficulty=action.difficulty,
        tick=1,
        season=season_for_tick(1),
        paused=False,
        resources=Resources.from_dict(profile.starting_resources),
        buildings=freeze_buildings(STARTING_BUILDINGS),
        population=tuple(generate_initial_population(profile.starting_population, rng)),
        stats=GameStats(peak_population=profile.starting_population),
        log=(LogEntry(1, f"Your reign begins. Difficulty: {profile.name}. Goal: survive {MAX_YEARS} years.", "info"),),
    )


def _restart(state: WorldState, action: act.Restart, rng: random.Random) -> WorldState:
    return initial_state()


def _load_state(state: WorldState, action: act.LoadState, rng: random.Random) -> WorldState:
    return action.state


def _toggle_pause(state: WorldState, action: act.TogglePause, rng: random.Random) -> WorldState:
    return replace(state, paused=not state.paused)


def _update_ending_summary(state: WorldState, action: act.UpdateEndingSummary, rng: random.Random) -> WorldState:
    if state.status != GameStatus.FINISHED or not action.summary:
        return state
    return replace(state, ending_summary=action.summary)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------
def _assign_job(state: WorldState, action: act.AssignJob, rng: random.Random) -> WorldState:
    if action.amount == 0 or action.job in (Job.CHILD, Job.UNEMPLOYED):
        return state
    population = list(state.population)
    changed = 0
    for index, villager in enumerate(population):
        if changed >= abs(action.amount):
            break
        if action.amount > 0 and villager.job == Job.UNEMPLOYED and villager.age >= ADULT_AGE:
            population[index] = replace(villager, job=action.job)
            changed += 1
        elif action.amount < 0 and villager.job == action.job:
            population[index] = replace(villager, job=Job.UNEMPLOYED)
            changed += 1
    if not changed:
        return state
    return replace(state, population=tuple(population))


def _construct(state: WorldState, action: act.Construct, rng: random.Random) -> WorldState:
    cost = construction_cost(action.building, state.technologies)
    res = state.resources
    if any(res.get(name) < amount for name, amount in cost.items()):
        return state
    buildings = dict(state.buildings)
    buildings[action.building] = buildings.get(action.building, 0) + 1
    spent = {name: res.get(name) - amount for name, amount in cost.items()}
    return replace(
        state,
        resources=res.settled(**spent),
        buildings=freeze_buildings(buildings),
        log=append_log(state.log, [LogEntry(state.tick, f"Construction complete: {action.building.value}", "success")]),
    )


def _research(state: WorldState, action: act.Research, rng: random.Random) -> WorldState:
    tech = TECHS_BY_ID.get(action.tech_id)
    if tech is None or state.has_tech(tech.id) or state.resources.knowledge < tech.cost:
        return state
    return replace(
        state,
        resources=state.resources.settled(knowledge=state.resources.knowledge - tech.cost),
        technologies=state.technologies + (tech.id,),
        log=append_log(state.log, [LogEntry(state.tick, f"Research complete: {tech.name}", "tech")]),
    )


def _trade(state: WorldState, action: act.Trade, rng: random.Random) -> WorldState:
    rates = TRADE_RATES.get(action.resource)
    if rates is None or state.building(BuildingKind.MARKET) < 1:
        return state
    modifier = state.trade_price_modifiers.get(action.resource, 1.0)
    res = state.resources
    if action.side == "buy":
        price = math.ceil(rates["buy"] * modifier)
        if res.gold < price:
            return state
        changes = {"gold": res.gold - price, action.resource: res.get(action.resource) + TRADE_AMOUNT}
    elif action.side == "sell":
        price = math.floor(rates["sell"] * modifier)
        if res.get(action.resource) < TRADE_AMOUNT:
            return state
        changes = {"gold": res.gold + price, action.resource: res.get(action.resource) - TRADE_AMOUNT}
    else:
        return state
    return replace(state, resources=res.settled(**changes))


def _set_food_priority(state: WorldState, action: act.SetFoodPriority, rng: random.Random) -> WorldState:
    if action.priority == state.food_priority:
        return state
    return replace(state, food_priority=action.priority)


def _hold_festival(state: WorldState, action: act.HoldFestival, rng: random.Random) -> WorldState:
    res = state.resources
    if res.gold < FESTIVAL_COST["gold"] or res.food < FESTIVAL_COST["food"]:
        return state
    population = tuple(replace(v, happiness=min(100, v.happiness + FESTIVAL_HAPPINESS)) for v in state.population)
    return replace(
        state,
        population=population,
        resources=res.settled(gold=res.gold - FESTIVAL_COST["gold"], food=res.food - FESTIVAL_COST["food"]),
        stats=replace(state.stats, festivals_held=state.stats.festivals_held + 1),
        log=append_log(state.log, [LogEntry(state.tick, "A grand festival was held!", "success")]),
    )


def _update_bio(state: WorldState, action: act.UpdateBio, rng: random.Random) -> WorldState:
    population = list(state.population)
    for index, villager in enumerate(population):
        if villager.id != action.villager_id:
            continue
        year = action.year if action.year is not None else villager.last_bio_year
        bio = " ".join(part for part in (villager.bio, action.bio) if part)
        population[index] = replace(villager, bio=bio or None, last_bio_year=max(year, villager.last_bio_year))
        return replace(state, population=tuple(population))
    return state


# ----------------------------------------------------------------------
# Event pool
# ----------------------------------------------------------------------
def _init_event_pool(state: WorldState, action: act.InitEventPool, rng: random.Random) -> WorldState:
    return replace(state, event_pool=replenish_pool((), fixed=fixed_events(state), external=action.events))


def _replenish_event_pool(state: WorldState, action: act.ReplenishEventPool, rng: random.Random) -> WorldState:
    return replace(state, event_pool=replenish_pool(state.event_pool, external=action.events))


def _trigger_event(state: WorldState, action: act.TriggerEvent, rng: random.Random) -> WorldState:
    event = next((e for e in state.event_pool if e.id == action.event_id), None)
    if event is None:
        return state
    return apply_event(state, event, rng)


def apply_event(state: WorldState, event: Event, rng: random.Random) -> WorldState:
    """Resolve one pooled event and consume it.

    Average happiness scales gains up and losses down (0.75x-1.25x), Hard
    difficulty makes losses 50% worse, and a well-guarded village shields
    part of its food and gold.
    """
    multiplier = round2(1 + (average_happiness(state.population) - 50) / 200)
    food, wood, gold = event.delta_food, event.delta_wood, event.delta_gold
    if state.difficulty == Difficulty.HARD:
        food = round2(food * 1.5) if food < 0 else food
        gold = round2(gold * 1.5) if gold < 0 else gold

    message = event.message
    note = ""
    if food > 0 or gold > 0:
        food = round2(food * multiplier) if food > 0 else food
        gold = round2(gold * multiplier) if gold > 0 else gold
        if multiplier > 1.1:
            note = " (high spirits boosted the gains)"
    if food < 0 or gold < 0:
        food = round2(food / multiplier) if food < 0 else food
        gold = round2(gold / multiplier) if gold < 0 else gold
        if multiplier > 1.1:
            note = " (high spirits softened the losses)"
        elif multiplier < 0.9:
            note = " (low morale made the losses worse)"

    base, coverage = guard_coverage(state.technologies, state.buildings)
    ratio = security_ratio(count_job(state.population, Job.GUARD), coverage, len(state.population))
    if ratio > 0.5 and (food < 0 or gold < 0):
        food = round2(food * (1 - ratio * 0.5)) if food < 0 else food
        gold = round2(gold * (1 - ratio * 0.8)) if gold < 0 else gold
        message += " (the guards limited the damage)"
    message += note

    population = list(state.population)
    stats = state.stats
    if event.delta_pop < 0:
        lost = min(-event.delta_pop, len(population))
        population = population[lost:]
        stats = replace(stats, total_deaths=stats.total_deaths + lost)
    elif event.delta_pop > 0:
        population.extend(generate_villager(rng) for _ in range(event.delta_pop))
        stats = replace(stats, peak_population=max(stats.peak_population, len(population)))

    res = state.resources
    kind = "ai" if event.source == EventSource.EXTERNAL else event.category.value
    return replace(
        state,
        resources=res.settled(food=res.food + food, wood=res.wood + wood, gold=res.gold + gold),
        population=tuple(population),
        stats=stats,
        event_pool=tuple(e for e in state.event_pool if e.id != event.id),
        log=append_log(state.log, [LogEntry(state.tick, message, kind)]),
    )


# ----------------------------------------------------------------------
# Endings
# ----------------------------------------------------------------------
def _finish(state: WorldState, ending_type: str, reason: Optional[str], message: str, kind: str) -> WorldState:
    finished = replace(
        state,
        status=GameStatus.FINISHED,
        paused=True,
        ending_type=ending_type,
        ending_reason=reason,
        log=append_log(state.log, [LogEntry(state.tick, message, kind)]),
    )
    logger.info("Game over at tick %d: %s (%s)", state.tick, ending_type, reason or "completed")
    return replace(finished, ending_summary=fallback_summary(finished))


def finish_victory(state: WorldState) -> WorldState:
    ending = classify(state, VICTORY)
    return _finish(state, ending, None, f"{MAX_YEARS} years have passed and the village endures!", "success")


# ----------------------------------------------------------------------
# The weekly tick
# ----------------------------------------------------------------------
def advance_tick(state: WorldState, rng: random.Random) -> WorldState:
    """Simulate one week."""
    if not state.is_running:
        return state
    if state.tick >= GAME_END_TICK:
        return finish_victory(state)

    tick = state.tick
    profile = state.profile
    techs = state.technologies
    buildings = state.buildings
    res = state.resources
    population = state.population
    total_pop = len(population)
    logs: List[LogEntry] = []

    season = season_for_tick(tick)
    food_multiplier = seasonal_food_multiplier(season, techs, buildings, profile.production_multiplier)
    produced = produce(population, techs, buildings, profile.production_multiplier, food_multiplier)

    # Security and theft
    guards = count_job(population, Job.GUARD)
    base_coverage, coverage = guard_coverage(techs, buildings)
    secure = guards >= required_guards(total_pop, coverage)
    theft_food = theft_gold = 0.0
    if not secure and total_pop > THEFT_MIN_POPULATION and rng.random() < THEFT_CHANCE:
        theft_food = round2(res.food * 0.05 * profile.consumption_rate)
        theft_gold = round2(res.gold * 0.05)
        if theft_food > 0 or theft_gold > 0:
            logs.append(LogEntry(tick, f"Lawlessness! Thieves stole {theft_food} food and {theft_gold} gold.", "warning"))

    # Raids and invasions
    invasion = None
    if invasion_due(tick, total_pop):
        invasion = resolve_invasion(total_pop, guards, coverage, base_coverage, rng)
        if invasion.catastrophic:
            fallen = replace(
                state,
                population=(),
                stats=replace(state.stats, total_deaths=state.stats.total_deaths + total_pop),
                log=append_log(state.log, logs),
            )
            return _finish(fallen, DESTRUCTION, REASON_MILITARY, f"{invasion.message} The village has fallen.", "danger")
        logs.append(LogEntry(tick, invasion.message, "success" if invasion.repelled else "danger"))

    # Winter heating
    consumed_wood = 0.0
    freezing = False
    if season == Season.WINTER:
        heating = math.ceil(total_pop * WINTER_WOOD_PER_CAPITA * profile.consumption_rate)
        available_wood = round2(res.wood + produced.wood)
        if available_wood >= heating:
            consumed_wood = float(heating)
        else:
            consumed_wood = available_wood
            freezing = True
            logs.append(LogEntry(tick, "The woodpile is empty! Villagers are freezing.", "danger"))

    # Food
    needs = needs_with_rates(population, profile.consumption_rate, techs, buildings)
    total_need = round2(sum(need for _, need in needs))
    available_food = round2(max(0.0, res.food + produced.food - theft_food))
    allocation = allocate_food(needs, available_food, state.food_priority)
    starving = available_food < total_need
    remaining_food = round2(max(0.0, available_food - total_need))

    if season != state.season:
        logs.append(LogEntry(tick, f"The season turns: {season.value}", "info"))

    # Villagers
    updated = _update_villagers(
        needs, allocation, state, tick, freezing, secure, total_pop, logs,
    )

    # Births
    babies: List[Villager] = []
    if updated and len(updated) < housing_capacity(buildings, techs):
        low, high = FERTILE_AGES
        candidates = [
            v for v in updated
            if low <= v.age <= high and v.happiness > FERTILE_HAPPINESS and v.hunger == 0 and not freezing
        ]
        if candidates and rng.random() < len(candidates) * BIRTH_CHANCE_PER_CANDIDATE:
            parent = updated[rng.randrange(len(updated))]
            babies.append(generate_newborn(rng, parent))

    # Deaths
    survivors: List[Villager] = []
    deaths = 0
    medicine = "medicine_1" in techs
    for villager in updated:
        dead = villager.health <= 0
        if not dead and villager.age > ELDER_AGE:
            chance = (villager.age - ELDER_AGE) * OLD_AGE_DEATH_RATE
            if medicine:
                chance *= 0.5
            dead = rng.random() < chance
        if dead:
            deaths += 1
        else:
            survivors.append(villager)
    if invasion is not None and invasion.pop < 0:
        casualties = min(-invasion.pop, len(survivors))
        survivors = survivors[: len(survivors) - casualties]
        deaths += casualties
    if deaths:
        logs.append(LogEntry(tick, f"{deaths} villagers died.", "danger"))
    if babies:
        survivors.extend(babies)
        logs.append(LogEntry(tick, "A new life was born.", "success"))

    # Maintenance
    upkeep = maintenance_cost(buildings, techs)
    short_of_upkeep = (
        res.wood + produced.wood - consumed_wood < upkeep["wood"]
        or res.stone + produced.stone < upkeep["stone"]
        or res.gold + produced.gold - theft_gold < upkeep["gold"]
    )
    if short_of_upkeep:
        logs.append(LogEntry(tick, "Not enough supplies to maintain the buildings!", "warning"))

    # Settlement
    won = {"food": 0.0, "wood": 0.0, "gold": 0.0}
    if invasion is not None:
        won = {"food": invasion.food, "wood": invasion.wood, "gold": invasion.gold}
    resources = res.settled(
        food=remaining_food + won["food"],
        wood=res.wood + produced.wood - consumed_wood - upkeep["wood"] + won["wood"],
        stone=res.stone + produced.stone - upkeep["stone"],
        gold=res.gold + produced.gold - theft_gold - upkeep["gold"] + won["gold"],
        knowledge=res.knowledge + produced.knowledge,
    )

    stats = state.stats
    stats = replace(
        stats,
        total_births=stats.total_births + len(babies),
        total_deaths=stats.total_deaths + deaths,
        peak_population=max(stats.peak_population, len(survivors)),
        total_food_produced=round2(stats.total_food_produced + produced.food),
        total_gold_mined=round2(stats.total_gold_mined + produced.gold),
        starvation_days=stats.starvation_days + (1 if starving else 0),
        invasions_repelled=stats.invasions_repelled + (1 if invasion is not None and invasion.repelled else 0),
        raids_survived=stats.raids_survived + (1 if invasion is not None and not invasion.repelled else 0),
    )

    next_state = replace(
        state,
        tick=tick + 1,
        season=season,
        resources=resources,
        population=tuple(survivors),
        stats=stats,
        log=append_log(state.log, logs),
        history=record_history(state.history, tick, len(survivors), remaining_food),
        trade_price_modifiers=MappingProxyType(
            trade_price_modifiers(population, produced.active_farmers, food_multiplier)
        ),
    )
    next_state = _run_event_pool(next_state, tick, rng)

    if not next_state.population:
        return _finish(next_state, DESTRUCTION, REASON_EXTINCTION, "The village has perished.", "danger")

    logger.debug(
        "Tick %d: pop=%d food=%.2f wood=%.2f gold=%.2f pool=%d",
        tick, len(next_state.population), resources.food, resources.wood, resources.gold,
        len(next_state.event_pool),
    )
    return next_state


def _update_villagers(
    needs: List[Tuple[Villager, float]],
    allocation: Dict[str, float],
    state: WorldState,
    tick: int,
    freezing: bool,
    secure: bool,
    total_pop: int,
    logs: List[LogEntry],
) -> List[Villager]:
    """Age, feed, warm and cheer every villager for one week.

    Food needs were fixed before ageing, so a child who comes of age this
    week still eats a child's ration.
    """
    techs = state.technologies
    baseline = happiness_baseline(state.buildings)
    recovery = happiness_recovery(techs, state.buildings)
    heal = 5 if "medicine_1" in techs else 2
    birthday = tick % WEEKS_PER_YEAR == 0
    unrest = not secure and total_pop > THEFT_MIN_POPULATION

    updated: List[Villager] = []
    for villager, need in needs:
        age, job = villager.age, villager.job
        if birthday:
            age += 1
            if age == ADULT_AGE and job == Job.CHILD:
                job = Job.UNEMPLOYED
                logs.append(LogEntry(tick, f"{villager.name} has come of age.", "info"))

        happiness = villager.happiness
        health = villager.health
        hunger = villager.hunger
        target = villager.happiness_baseline

        if freezing:
            health -= FREEZING_HEALTH_LOSS
            happiness = max(0, happiness - FREEZING_HAPPINESS_LOSS)
            activity = Activity.FREEZING
        elif job in (Job.UNEMPLOYED, Job.CHILD):
            activity = Activity.IDLE
        else:
            activity = Activity.WORKING

        if unrest:
            happiness = max(0, happiness - INSECURITY_HAPPINESS_LOSS)

        ratio = shortage_ratio(allocation.get(villager.id, 0.0), need)
        if ratio > 0:
            hunger = min(100, round2(hunger + round2(ratio * MAX_HUNGER_GAIN)))
            happiness = max(0, round2(happiness - round2(ratio * MAX_HAPPINESS_LOSS)))
            health = max(0, round2(health - round2(ratio * MAX_HEALTH_LOSS)))
        else:
            hunger = 0
            target = baseline
            if not freezing:
                health = min(100, health + heal)
                if happiness < target:
                    happiness = happiness + min(target - happiness, recovery)
                elif happiness > target:
                    happiness = max(target, happiness - HAPPINESS_REGRESSION)

        updated.append(
            replace(
                villager,
                age=age,
                job=job,
                happiness=round2(clamp(happiness, 0, 100)),
                happiness_baseline=target,
                health=round2(clamp(health, 0, 100)),
                hunger=round2(clamp(hunger, 0, 100)),
                current_activity=activity,
            )
        )
    return updated


def _run_event_pool(state: WorldState, tick: int, rng: random.Random) -> WorldState:
    """Refresh the fixed events when the pool runs low, then maybe fire one."""
    if tick > 1 and tick % REPLENISH_INTERVAL == 0 and needs_replenish(state.event_pool):
        state = replace(state, event_pool=replenish_pool(state.event_pool, fixed=fixed_events(state)))

    if not state.population or not state.event_pool:
        return state
    if tick > EVENT_FIRST_TICK and tick % EVENT_INTERVAL == 0 and rng.random() > EVENT_SKIP_CHANCE:
        event, _ = draw_event(state.event_pool, rng)
        if event is not None:
            state = apply_event(state, event, rng)
    return state


def _advance(state: WorldState, action: act.AdvanceTick, rng: random.Random) -> WorldState:
    return advance_tick(state, rng)


_HANDLERS: Dict[type, Callable[[WorldState, object, random.Random], WorldState]] = {
    act.StartGame: _start_game,
    act.Restart: _restart,
    act.LoadState: _load_state,
    act.TogglePause: _toggle_pause,
    act.UpdateEndingSummary: _update_ending_summary,
    act.AdvanceTick: _advance,
    act.AssignJob: _assign_job,
    act.Construct: _construct,
    act.Research: _research,
    act.Trade: _trade,
    act.SetFoodPriority: _set_food_priority,
    act.HoldFestival: _hold_festival,
    act.UpdateBio: _update_bio,
    act.InitEventPool: _init_event_pool,
    act.ReplenishEventPool: _replenish_event_pool,
    act.TriggerEvent: _trigger_event,
}

# Everything else needs a game in progress.
_ANY_STATUS = {act.StartGame, act.Restart, act.LoadState, act.TogglePause, act.UpdateEndingSummary}
