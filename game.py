import logging
import math
import sys
from dataclasses import dataclass

import pygame

from chronicle.actions import (
    AdvanceTick,
    AssignJob,
    Construct,
    HoldFestival,
    Research,
    Restart,
    SetFoodPriority,
    StartGame,
    TogglePause,
    Trade,
)
from chronicle.config import CONFIG
from chronicle.driver import GameDriver
from chronicle.numeric import format_number
from chronicle.rules import TECH_TREE, BuildingKind, Difficulty, FoodPriority, GameStatus, Job, construction_cost, game_year
from chronicle.scoring import rank, score
from chronicle.state import TRADABLE

logger = logging.getLogger(__name__)

# ==========================================
# CONFIGURATION
# ==========================================
TILE_SIZE = 36
MAP_W, MAP_H = 18, 18
SIDEBAR_W = 380
SCREEN_W = (MAP_W * TILE_SIZE) + SIDEBAR_W
SCREEN_H = MAP_H * TILE_SIZE
LOG_LINES = 8

# Color Palette
C_GRASS  = (100, 180, 80)
C_SNOW   = (225, 230, 240)
C_AUTUMN = (190, 140, 60)
BROWN    = (100, 60, 30)
WHITE    = (255, 255, 255)
BLACK    = (20, 20, 20)
GOLD     = (255, 215, 0)
RED      = (220, 20, 60)
GREEN    = (90, 200, 90)
ORANGE   = (240, 160, 40)

SEASON_COLORS = {"Spring": C_GRASS, "Summer": (80, 160, 60), "Autumn": C_AUTUMN, "Winter": C_SNOW}
JOB_COLORS = {
    Job.FARMER: (240, 200, 80),
    Job.WOODCUTTER: (140, 90, 40),
    Job.MINER: (150, 150, 160),
    Job.GUARD: (200, 40, 40),
    Job.SCHOLAR: (80, 120, 230),
    Job.UNEMPLOYED: (200, 200, 200),
    Job.CHILD: (250, 170, 200),
}
LOG_COLORS = {"danger": RED, "warning": ORANGE, "success": GREEN, "ai": GOLD, "tech": (120, 170, 255)}

JOB_KEYS = {
    pygame.K_f: Job.FARMER,
    pygame.K_w: Job.WOODCUTTER,
    pygame.K_m: Job.MINER,
    pygame.K_g: Job.GUARD,
    pygame.K_s: Job.SCHOLAR,
}
DIFFICULTY_KEYS = {pygame.K_1: Difficulty.EASY, pygame.K_2: Difficulty.NORMAL, pygame.K_3: Difficulty.HARD}
BUILD_ORDER = list(BuildingKind)
PRIORITY_ORDER = list(FoodPriority)


# ==========================================
# INPUT
# ==========================================
@dataclass
class Selection:
    """What the sidebar cursors point at."""
    building: int = 0
    trade: int = 0
    villager: int = 0


def key_to_action(key, mods, state, selection):
    """Translate a key press into an action, or None.

    Cursor keys only move the selection and return None.
    """
    if state.status == GameStatus.MENU:
        difficulty = DIFFICULTY_KEYS.get(key)
        return StartGame(difficulty) if difficulty else None
    if key == pygame.K_n:
        return Restart()
    if state.status != GameStatus.PLAYING:
        return None

    if key == pygame.K_SPACE:
        return TogglePause()
    if key in JOB_KEYS:
        return AssignJob(JOB_KEYS[key], -1 if mods & pygame.KMOD_SHIFT else 1)
    if key == pygame.K_b:
        selection.building = (selection.building + (-1 if mods & pygame.KMOD_SHIFT else 1)) % len(BUILD_ORDER)
        return None
    if key == pygame.K_RETURN:
        return Construct(BUILD_ORDER[selection.building])
    if key == pygame.K_r:
        for tech in TECH_TREE:
            if not state.has_tech(tech.id):
                return Research(tech.id)
        return None
    if key == pygame.K_t:
        selection.trade = (selection.trade + 1) % len(TRADABLE)
        return None
    if key == pygame.K_p:
        return Trade(TRADABLE[selection.trade], "buy")
    if key == pygame.K_o:
        return Trade(TRADABLE[selection.trade], "sell")
    if key == pygame.K_y:
        current = PRIORITY_ORDER.index(state.food_priority)
        return SetFoodPriority(PRIORITY_ORDER[(current + 1) % len(PRIORITY_ORDER)])
    if key == pygame.K_h:
        return HoldFestival()
    if key == pygame.K_TAB and state.population:
        selection.villager = (selection.villager + 1) % len(state.population)
    return None


# ==========================================
# GRAPHICS DRAWING HELPERS
# ==========================================
def draw_ground(surf, season):
    base = SEASON_COLORS.get(season.value, C_GRASS)
    for y in range(MAP_H):
        for x in range(MAP_W):
            rect = (x*TILE_SIZE, y*TILE_SIZE, TILE_SIZE, TILE_SIZE)
            pygame.draw.rect(surf, base, rect)
            if (x + y) % 5 == 0:
                pygame.draw.line(surf, BROWN, (x*TILE_SIZE+5, y*TILE_SIZE+10), (x*TILE_SIZE+7, y*TILE_SIZE+5), 1)


def draw_buildings(surf, buildings, font):
    """Lay buildings out on a grid starting from the top-left corner."""
    slot = 0
    for kind, count in buildings.items():
        for _ in range(count):
            x, y = slot % (MAP_W // 2) * 2, slot // (MAP_W // 2) * 2
            if y >= MAP_H:
                return
            rect = (x*TILE_SIZE+6, y*TILE_SIZE+6, TILE_SIZE*2-12, TILE_SIZE*2-12)
            pygame.draw.rect(surf, BROWN if kind == BuildingKind.HOUSE else GOLD, rect, 0 if kind == BuildingKind.HOUSE else 2)
            if kind != BuildingKind.HOUSE:
                surf.blit(font.render(kind.value[:6], True, WHITE), (x*TILE_SIZE+8, y*TILE_SIZE+8))
            slot += 1


def draw_villager(surf, index, villager, selected):
    x = (index * 7) % (MAP_W * TILE_SIZE - 20) + 10
    y = MAP_H * TILE_SIZE - 30 - (index * 7) // (MAP_W * TILE_SIZE - 20) * 16
    bob = int(math.sin(pygame.time.get_ticks() * 0.01 + index) * 3)
    color = JOB_COLORS.get(villager.job, WHITE)
    pygame.draw.circle(surf, color, (x, y + bob), 5 if villager.is_adult else 3)
    if selected:
        pygame.draw.circle(surf, GOLD, (x, y + bob), 9, 2)


def draw_sidebar(surf, state, selection, font, bold):
    left = MAP_W*TILE_SIZE
    pygame.draw.rect(surf, (30, 25, 20), (left, 0, SIDEBAR_W, SCREEN_H))
    res = state.resources
    pop = state.population
    status = "PAUSED" if state.paused else "RUNNING"
    lines = [
        (f"YEAR {game_year(state.tick)}  WEEK {state.tick}  {state.season.value}", GOLD),
        (f"{state.profile.name}  [{status}]", WHITE),
        (f"Food {format_number(res.food)}  Wood {format_number(res.wood)}", WHITE),
        (f"Stone {format_number(res.stone)}  Gold {format_number(res.gold)}", WHITE),
        (f"Knowledge {format_number(res.knowledge)}  Techs {len(state.technologies)}", WHITE),
        (f"Population {len(pop)}  Food plan: {state.food_priority.value}", WHITE),
        ("  ".join(f"{job.value[:4]} {sum(1 for v in pop if v.job == job)}" for job in JOB_COLORS), WHITE),
    ]
    kind = BUILD_ORDER[selection.building]
    cost = construction_cost(kind, state.technologies)
    lines.append((f"Build: {kind.value} ({', '.join(f'{k} {int(v)}' for k, v in cost.items() if v)})", GOLD))
    tradable = TRADABLE[selection.trade]
    lines.append((f"Trade: {tradable} x{state.trade_price_modifiers.get(tradable, 1.0)}", GOLD))
    if pop:
        chosen = pop[selection.villager % len(pop)]
        lines.append((f"{chosen.name}, {chosen.age}, {chosen.job.value}", GOLD))
        lines.append(((chosen.bio or "...")[:52], WHITE))
    lines.append(("---", WHITE))

    y_pos = 16
    for text, color in lines:
        surf.blit(font.render(text, True, color), (left+14, y_pos))
        y_pos += 22
    for entry in state.log[-LOG_LINES:]:
        text = entry.message if len(entry.message) <= 50 else entry.message[:48] + "..."
        surf.blit(font.render(text, True, LOG_COLORS.get(entry.kind, WHITE)), (left+14, y_pos))
        y_pos += 20
    surf.blit(bold.render("SPACE pause  F/W/M/G/S jobs  B/ENTER build", True, WHITE), (left+14, SCREEN_H-44))
    surf.blit(bold.render("R research  T/P/O trade  Y food  H fest", True, WHITE), (left+14, SCREEN_H-24))


def draw_menu(surf, bold):
    lines = [
        "VILLAGE CHRONICLE",
        "Keep your village alive for ten years.",
        "1 - Easy   2 - Normal   3 - Hard",
        "C - continue the saved game",
    ]
    for i, line in enumerate(lines):
        surf.blit(bold.render(line, True, GOLD if i == 0 else WHITE), (60, 120 + i * 40))


def draw_ending(surf, state, font, bold):
    final = score(state)
    lines = [
        f"{state.ending_type}",
        f"Reason: {state.ending_reason}" if state.ending_reason else "The ten years are over.",
        f"Score {format_number(final)}  Rank {rank(final)}",
        f"Births {state.stats.total_births}  Deaths {state.stats.total_deaths}  Peak {state.stats.peak_population}",
    ]
    for i, line in enumerate(lines):
        surf.blit(bold.render(line, True, GOLD if i == 0 else WHITE), (40, 80 + i * 36))
    words = (state.ending_summary or "").split()
    row, y_pos = "", 260
    for word in words:
        if len(row) + len(word) > 60:
            surf.blit(font.render(row, True, WHITE), (40, y_pos))
            row, y_pos = "", y_pos + 22
        row = f"{row} {word}".strip()
    surf.blit(font.render(row, True, WHITE), (40, y_pos))
    surf.blit(bold.render("N - new game", True, GOLD), (40, SCREEN_H - 60))


# ==========================================
# MAIN LOOP
# ==========================================
def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    pygame.init()
    screen = pygame.display.set_mode((SCREEN_W, SCREEN_H))
    pygame.display.set_caption("Village Chronicle")
    driver = GameDriver(CONFIG)
    selection = Selection()
    clock = pygame.time.Clock()
    font = pygame.font.SysFont("Verdana", 13)
    bold = pygame.font.SysFont("Verdana", 15, bold=True)
    tick_event = pygame.USEREVENT + 1
    pygame.time.set_timer(tick_event, CONFIG.tick_interval_ms)

    while True:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                pygame.quit()
                sys.exit()
            if event.type == tick_event and driver.state.is_running:
                driver.submit(AdvanceTick())
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_c and driver.state.status == GameStatus.MENU:
                    driver.resume()
                    continue
                action = key_to_action(event.key, event.mod, driver.state, selection)
                if action is not None:
                    driver.submit(action)

        state = driver.process()
        screen.fill(BLACK)
        if state.status == GameStatus.MENU:
            draw_menu(screen, bold)
        elif state.status == GameStatus.FINISHED:
            draw_ending(screen, state, font, bold)
        else:
            draw_ground(screen, state.season)
            draw_buildings(screen, state.buildings, font)
            for i, villager in enumerate(state.population):
                draw_villager(screen, i, villager, i == selection.villager % max(1, len(state.population)))
            draw_sidebar(screen, state, selection, font, bold)

        pygame.display.flip()
        clock.tick(CONFIG.render_fps)


if __name__ == "__main__":
    main()
