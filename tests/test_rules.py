from chronicle.rules import (
    BUILDING_COSTS,
    GAME_END_TICK,
    STARTING_BUILDINGS,
    TECH_TREE,
    TECHS_BY_ID,
    BuildingKind,
    Season,
    construction_cost,
    game_year,
    housing_capacity,
    season_for_tick,
)


def test_season_boundaries():
    assert season_for_tick(0) == Season.SPRING
    assert season_for_tick(12) == Season.SPRING
    assert season_for_tick(13) == Season.SUMMER
    assert season_for_tick(26) == Season.AUTUMN
    assert season_for_tick(39) == Season.WINTER
    assert season_for_tick(51) == Season.WINTER
    assert season_for_tick(52) == Season.SPRING


def test_year_and_game_length():
    assert GAME_END_TICK == 520
    assert game_year(1) == 1
    assert game_year(52) == 2


def test_housing_capacity_with_masonry():
    assert housing_capacity(STARTING_BUILDINGS, ()) == 20
    assert housing_capacity(STARTING_BUILDINGS, ("masonry_1",)) == 32


def test_engineering_discounts_construction():
    base = construction_cost(BuildingKind.MARKET, ())
    assert base == BUILDING_COSTS[BuildingKind.MARKET]
    discounted = construction_cost(BuildingKind.MARKET, ("engineering_1",))
    assert discounted == {"wood": 54.0, "stone": 13.5, "gold": 27.0}


def test_tech_tree_is_complete():
    assert len(TECH_TREE) == 16
    assert len(TECHS_BY_ID) == 16
    assert TECHS_BY_ID["tools_1"].cost == 80
    costs = [tech.cost for tech in TECH_TREE]
    assert costs == sorted(costs)
