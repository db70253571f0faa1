from dataclasses import replace

from chronicle.rules import Difficulty
from chronicle.scoring import rank, score
from chronicle.state import GameStats, Resources

from conftest import make_villager


def scored_state(playing_state, difficulty):
    return replace(
        playing_state,
        difficulty=difficulty,
        population=tuple(make_villager(f"v{i}", happiness=50) for i in range(10)),
        technologies=("tools_1", "farming_1"),
        resources=Resources(gold=100),
        stats=GameStats(total_deaths=2, starvation_days=3),
    )


def test_score_components(playing_state):
    # 10*100 + 50*50 + 2*500 + 4*200 + 100 - 2*50 - 3*10
    assert score(scored_state(playing_state, Difficulty.NORMAL)) == 5270
    assert score(scored_state(playing_state, Difficulty.HARD)) == 7905
    assert score(scored_state(playing_state, Difficulty.EASY)) == 4216


def test_rank_thresholds():
    assert rank(60000) == "S"
    assert rank(50000) == "A"
    assert rank(35001) == "A"
    assert rank(20001) == "B"
    assert rank(10001) == "C"
    assert rank(5270) == "D"
    assert rank(5000) == "F"
    assert rank(-100) == "F"
