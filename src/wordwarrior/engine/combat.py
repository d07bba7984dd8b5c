from __future__ import annotations

import math
import random
from dataclasses import dataclass, replace
from typing import Sequence

from .scoring import MAX_TARGETS_PER_ROUND
from .types import CardResult, Encounter, Entity

INITIAL_ENEMY_HP = 500
SPAWN_CHANCE = 0.2


@dataclass(frozen=True)
class HandResolution:
    total_base_attack: int
    total_time_multiplier: float
    final_attack: int
    total_attack_count: int
    total_base_block: int
    total_block_multiplier: float
    final_block: int
    total_hp_conversion: float


@dataclass(frozen=True)
class AttackOutcome:
    enemies: tuple[Entity, ...]
    hits: int
    damage_dealt: int


@dataclass(frozen=True)
class EnemyTurnOutcome:
    hero: Entity
    enemies: tuple[Entity, ...]
    total_damage: int
    absorbed: int
    hp_lost: int


def aggregate_results(results: Sequence[CardResult]) -> HandResolution:
    """Fold one round of card results into a single attack/defense.

    Time multipliers are summed across cards of the same type, so every
    extra well-answered card raises the multiplier.
    """
    attacks = [r for r in results if r.card_type == "ATTACK"]
    defenses = [r for r in results if r.card_type == "DEFENSE"]

    base_attack = sum(r.attack for r in attacks)
    attack_mult = sum(r.time_multiplier for r in attacks)
    attack_count = min(MAX_TARGETS_PER_ROUND, sum(r.attack_count for r in attacks))

    base_block = sum(r.block for r in defenses)
    block_mult = sum(r.time_multiplier for r in defenses)

    return HandResolution(
        total_base_attack=base_attack,
        total_time_multiplier=attack_mult,
        final_attack=math.floor(base_attack * attack_mult),
        total_attack_count=attack_count,
        total_base_block=base_block,
        total_block_multiplier=block_mult,
        final_block=math.floor(base_block * block_mult),
        total_hp_conversion=sum(r.hp_conversion for r in defenses),
    )


def apply_defense(hero: Entity, resolution: HandResolution) -> tuple[Entity, int]:
    """Add the round's block to the hero and heal from hp conversion."""
    block = hero.block + max(0, resolution.final_block)
    healed = 0
    if resolution.total_hp_conversion > 0:
        heal = math.floor(resolution.final_block * resolution.total_hp_conversion)
        new_hp = min(hero.max_hp, hero.current_hp + max(0, heal))
        healed = new_hp - hero.current_hp
        hero = replace(hero, current_hp=new_hp)
    return replace(hero, block=block), healed


def _absorb(entity: Entity, amount: int) -> tuple[Entity, int]:
    """Shield first, then health. Returns the entity and the hp lost."""
    absorbed = min(entity.block, amount)
    remaining = max(0, amount - entity.block)
    hp_lost = min(entity.current_hp, remaining)
    return (
        replace(entity, block=entity.block - absorbed, current_hp=max(0, entity.current_hp - remaining)),
        hp_lost,
    )


def apply_player_attack(enemies: Sequence[Entity], final_attack: int, attack_count: int) -> AttackOutcome:
    """Hit up to `attack_count` living enemies in order, each for the full attack.

    Dead enemies are skipped, so a kill moves the next hit on to the next
    living enemy.
    """
    if final_attack <= 0 or attack_count <= 0:
        return AttackOutcome(enemies=tuple(enemies), hits=0, damage_dealt=0)

    out: list[Entity] = []
    hits = 0
    dealt = 0
    for enemy in enemies:
        if enemy.alive and hits < attack_count:
            hits += 1
            hit, lost = _absorb(enemy, final_attack)
            dealt += lost
            out.append(replace(hit, is_hit=True, last_damage_taken=final_attack))
        else:
            out.append(enemy)
    return AttackOutcome(enemies=tuple(out), hits=hits, damage_dealt=dealt)


def purge_dead(enemies: Sequence[Entity]) -> tuple[Entity, ...]:
    return tuple(
        replace(e, is_hit=False, last_damage_taken=None) for e in enemies if e.alive
    )


def resolve_enemy_turn(hero: Entity, enemies: Sequence[Entity]) -> EnemyTurnOutcome:
    total = 0
    acted: list[Entity] = []
    for enemy in enemies:
        if not enemy.alive:
            acted.append(enemy)
            continue
        if enemy.intent == "ATTACK":
            total += enemy.intent_value
        elif enemy.intent == "DEFEND":
            enemy = replace(enemy, block=enemy.block + enemy.intent_value)
        elif enemy.intent == "CAST":
            total += enemy.intent_value * 2
        acted.append(enemy)

    absorbed = min(hero.block, total)
    new_hero, hp_lost = _absorb(hero, total)
    return EnemyTurnOutcome(
        hero=replace(new_hero, is_hit=total > 0),
        enemies=tuple(acted),
        total_damage=total,
        absorbed=absorbed,
        hp_lost=hp_lost,
    )


def roll_intent(enemy: Entity, rng: random.Random) -> Entity:
    r = rng.random()
    if r < 0.7:
        return replace(enemy, intent="ATTACK", intent_value=rng.randint(100, 200))
    if r < 0.9:
        return replace(enemy, intent="DEFEND", intent_value=rng.randint(50, 100))
    return replace(enemy, intent="CAST", intent_value=rng.randint(30, 80))


def assign_intents(enemies: Sequence[Entity], rng: random.Random) -> tuple[Entity, ...]:
    return tuple(roll_intent(e, rng) if e.alive else e for e in enemies)


def create_enemy(rng: random.Random, hp: int, enemy_type: str = "slime") -> Entity:
    return Entity(
        id=f"{enemy_type}-{rng.getrandbits(32):08x}",
        current_hp=hp,
        max_hp=hp,
        enemy_type=enemy_type,
    )


def build_enemies(encounter: Encounter, rng: random.Random, base_hp: int = INITIAL_ENEMY_HP) -> tuple[Entity, ...]:
    hp = max(1, math.floor(base_hp * encounter.difficulty))
    enemies: list[Entity] = []
    for i in range(encounter.enemy_count):
        enemy_type = encounter.enemy_types[i % len(encounter.enemy_types)]
        enemies.append(create_enemy(rng, hp, enemy_type))
    return assign_intents(enemies, rng)


def spawn_hp(level: int, base_hp: int = INITIAL_ENEMY_HP) -> int:
    return math.floor(base_hp * (1 + (level - 1) * 0.2))


def maybe_spawn(
    enemies: Sequence[Entity],
    level: int,
    rng: random.Random,
    chance: float = SPAWN_CHANCE,
    base_hp: int = INITIAL_ENEMY_HP,
) -> tuple[tuple[Entity, ...], tuple[Entity, ...]]:
    """Roll the per-question reinforcement check.

    Returns the new enemy list and the spawned enemies (possibly empty).
    """
    if rng.random() >= chance:
        return tuple(enemies), ()
    count = 1 if rng.random() < 0.5 else 2
    hp = spawn_hp(level, base_hp)
    spawned = assign_intents([create_enemy(rng, hp) for _ in range(count)], rng)
    return (*enemies, *spawned), spawned
