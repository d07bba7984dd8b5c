from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable

from loguru import logger

from . import combat, mapgen
from .actions import (
    Action,
    ConfirmSelectionAction,
    ContinueAction,
    EnterNodeAction,
    MoveToNodeAction,
    PauseAction,
    PickCardAction,
    QuitAction,
    ResumeAction,
    SelectRoleAction,
    StartGameAction,
    SubmitAnswerAction,
)
from .deck import discard_hand, draw_with_reshuffle, initialize_deck, shuffle
from .scheduler import Scheduler
from .scoring import Feedback, score_answer
from .selector import DEFAULT_TIME_LIMITS, StatsStore, select_questions_for_cards
from .types import (
    ROLES,
    Card,
    CardDatabase,
    CardResult,
    CharacterBlock,
    Encounter,
    Entity,
    MapNode,
    MapState,
    QuizCatalog,
    Rarity,
    Sentence,
    Status,
)

Event = dict[str, object]

PAUSABLE: frozenset[Status] = frozenset({"PLAYING", "FEEDBACK"})
NEW_RUN_FROM: frozenset[Status] = frozenset({"START", "GAMEOVER"})


@dataclass(frozen=True)
class GameConfig:
    hero_hp: int = 500
    enemy_base_hp: int = combat.INITIAL_ENEMY_HP
    hand_draw_size: int = 8
    hand_select_size: int = 5
    spawn_chance: float = combat.SPAWN_CHANCE
    time_limits: dict[Rarity, float] = field(default_factory=lambda: dict(DEFAULT_TIME_LIMITS))
    # pacing, in milliseconds
    countdown_tick_ms: int = 100
    next_question_delay_ms: int = 300
    player_hit_delay_ms: int = 300
    purge_delay_ms: int = 800
    enemy_windup_ms: int = 500
    enemy_hit_delay_ms: int = 300
    enemy_resolve_delay_ms: int = 500


@dataclass
class GameState:
    status: Status = "START"
    score: int = 0
    combo: int = 0
    level: int = 1
    round_progress: int = 0
    perfects_in_round: int = 0
    accumulated_attack: int = 0
    accumulated_block: int = 0


@dataclass
class StepResult:
    ok: bool
    events: list[Event]
    error: str | None = None


def _fail(msg: str) -> StepResult:
    return StepResult(ok=False, events=[], error=msg)


class GameSession:
    """The combat/progression state machine.

    Player intents go through `step`; timed phase transitions run when the
    owner advances the scheduler (`advance` / `settle`). Every intent is
    gated on `state.status`, so stale or duplicate intents are rejected
    with a failed StepResult instead of raising.
    """

    def __init__(
        self,
        cards: CardDatabase,
        catalog: QuizCatalog,
        stats: StatsStore,
        seed: int,
        config: GameConfig | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cards = cards
        self.catalog = catalog
        self.stats = stats
        self.seed = seed
        self.config = config or GameConfig()
        self.rng = random.Random(seed)
        self.scheduler = scheduler or Scheduler()
        self.clock = clock
        self._lock = threading.RLock()

        self.state = GameState()
        self.hero = self._new_hero()
        self.enemies: tuple[Entity, ...] = ()
        self.encounter: Encounter | None = None
        self.map_state: MapState | None = None

        self.deck: list[Card] = []
        self.hand: list[Card] = []
        self.discard: list[Card] = []
        self.selected_uids: list[str] = []

        self.questions: list[Sentence] = []
        self.question_index = 0
        self.blocks: tuple[CharacterBlock, ...] = ()
        self.time_left_ds = 0
        self.feedback: Feedback | None = None
        self.results: list[CardResult] = []
        self.last_resolution: combat.HandResolution | None = None

        self.paused_from: Status | None = None
        self._countdown: int | None = None

        self.action_log: list[Action] = []
        self.event_log: list[Event] = []

    # ------------------------------------------------------------ helpers

    def _new_hero(self) -> Entity:
        return Entity(id="hero", current_hp=self.config.hero_hp, max_hp=self.config.hero_hp)

    def _emit(self, event_type: str, **payload: object) -> None:
        self.event_log.append({"type": event_type, **payload})

    def _set_status(self, status: Status) -> None:
        if status != self.state.status:
            logger.debug("status {} -> {}", self.state.status, status)
        self.state.status = status

    def _events_since(self, mark: int) -> list[Event]:
        return self.event_log[mark:]

    @property
    def time_left(self) -> float:
        return self.time_left_ds / 10.0

    @property
    def current_sentence(self) -> Sentence | None:
        if self.state.status in ("PLAYING", "FEEDBACK", "PAUSED") and self.question_index < len(self.questions):
            return self.questions[self.question_index]
        return None

    @property
    def current_card(self) -> Card | None:
        if self.current_sentence is None or self.question_index >= len(self.hand):
            return None
        return self.hand[self.question_index]

    @property
    def max_selectable(self) -> int:
        return min(self.config.hand_select_size, len(self.hand))

    def all_cards(self) -> list[Card]:
        return [*self.deck, *self.hand, *self.discard]

    # ----------------------------------------------------------- driving

    def step(self, action: Action) -> StepResult:
        """Apply a single player intent."""
        with self._lock:
            self.action_log.append(action)
            mark = len(self.event_log)

            if isinstance(action, StartGameAction):
                result = self._start_game()
            elif isinstance(action, QuitAction):
                result = self._quit()
            elif isinstance(action, PauseAction):
                result = self._pause()
            elif isinstance(action, ResumeAction):
                result = self._resume()
            elif isinstance(action, EnterNodeAction):
                result = self._enter_current_node()
            elif isinstance(action, MoveToNodeAction):
                result = self._move_to_node(action.node_id)
            elif isinstance(action, PickCardAction):
                result = self._pick_card(action.card_uid)
            elif isinstance(action, ConfirmSelectionAction):
                result = self._confirm_selection()
            elif isinstance(action, SelectRoleAction):
                result = self._select_role(action.block_index, action.role)
            elif isinstance(action, SubmitAnswerAction):
                result = self._submit_answer()
            elif isinstance(action, ContinueAction):
                result = self._continue()
            else:
                result = _fail("Unknown action.")

            if result.ok:
                result.events = self._events_since(mark)
            return result

    def advance(self, ms: int) -> int:
        with self._lock:
            return self.scheduler.advance(ms)

    def awaiting_timer(self) -> bool:
        status = self.state.status
        if status in ("PLAYER_ATTACK", "ENEMY_ATTACK"):
            return True
        return status == "FEEDBACK" and self.feedback is None

    def settle(self, max_ms: int = 60_000) -> int:
        """Run scheduled phase transitions until the game waits on the player."""
        elapsed = 0
        with self._lock:
            while self.awaiting_timer() and elapsed < max_ms and not self.scheduler.paused:
                due = self.scheduler.next_due_ms()
                if due is None:
                    break
                delta = max(0, due - self.scheduler.now_ms)
                self.scheduler.advance(delta)
                elapsed += delta
        return elapsed

    # ------------------------------------------------------------ run flow

    def _start_game(self) -> StepResult:
        if self.state.status not in NEW_RUN_FROM:
            return _fail("A run is already in progress.")
        self.scheduler.clear()
        self.scheduler.resume()
        self.state = GameState(status="MAP", level=1)
        self.hero = self._new_hero()
        self.enemies = ()
        self.encounter = None
        self.deck = shuffle(initialize_deck(self.cards, self.rng), self.rng)
        self.hand = []
        self.discard = []
        self.selected_uids = []
        self._reset_question_state()
        self.map_state = mapgen.generate_floor_map(1)
        self.paused_from = None
        self._emit("GAME_STARTED", deck_size=len(self.deck), floor=1)
        logger.info("new run started (seed={}, deck={} cards)", self.seed, len(self.deck))
        return StepResult(ok=True, events=[])

    def _quit(self) -> StepResult:
        self.scheduler.clear()
        self.scheduler.resume()
        self._countdown = None
        self.paused_from = None
        self._set_status("START")
        self._emit("GAME_QUIT")
        return StepResult(ok=True, events=[])

    def _pause(self) -> StepResult:
        if self.state.status not in PAUSABLE:
            return _fail("Nothing to pause.")
        self.paused_from = self.state.status
        self.scheduler.pause()
        self._set_status("PAUSED")
        self._emit("PAUSED", status=self.paused_from)
        return StepResult(ok=True, events=[])

    def _resume(self) -> StepResult:
        if self.state.status != "PAUSED" or self.paused_from is None:
            return _fail("Game is not paused.")
        self._set_status(self.paused_from)
        self.paused_from = None
        self.scheduler.resume()
        self._emit("RESUMED", status=self.state.status)
        return StepResult(ok=True, events=[])

    # ----------------------------------------------------------------- map

    def _enter_current_node(self) -> StepResult:
        if self.state.status != "MAP" or self.map_state is None:
            return _fail("Not on the map.")
        node = self.map_state.current_node
        if node is None:
            return _fail("No current node.")
        if node.completed:
            return _fail("Node already completed.")
        self._enter(node)
        return StepResult(ok=True, events=[])

    def _move_to_node(self, node_id: str) -> StepResult:
        if self.state.status != "MAP" or self.map_state is None:
            return _fail("Not on the map.")
        current = self.map_state.current_node
        if current is not None and not current.completed:
            return _fail("Finish the current node first.")
        moved = mapgen.move_to_node(self.map_state, node_id)
        if moved is self.map_state:
            return _fail("Target node is not reachable.")
        self.map_state = moved
        node = moved.current_node
        assert node is not None
        self._emit("MOVED", node_id=node.id, node_type=node.type)
        self._enter(node)
        return StepResult(ok=True, events=[])

    def _enter(self, node: MapNode) -> None:
        assert self.map_state is not None
        encounter = mapgen.generate_encounter(node.type, self.map_state.floor)
        if encounter is None:
            self.map_state = mapgen.complete_node(self.map_state, node.id)
            self._emit("NODE_COMPLETED", node_id=node.id, node_type=node.type)
            logger.info("non-combat node {} ({}) completed on entry", node.id, node.type)
            return

        self.encounter = encounter
        self.enemies = combat.build_enemies(encounter, self.rng, base_hp=self.config.enemy_base_hp)
        self._emit(
            "ENCOUNTER_STARTED",
            node_id=node.id,
            encounter_id=encounter.id,
            enemies=[e.id for e in self.enemies],
        )
        logger.info(
            "encounter {} on {}: {} x {}",
            encounter.id,
            node.id,
            encounter.enemy_count,
            ",".join(encounter.enemy_types),
        )
        self._start_round()

    # --------------------------------------------------------------- round

    def _reset_question_state(self) -> None:
        self.questions = []
        self.question_index = 0
        self.blocks = ()
        self.time_left_ds = 0
        self.feedback = None
        self.results = []
        self._cancel_countdown()

    def _start_round(self) -> None:
        self.state.round_progress = 0
        self.state.perfects_in_round = 0
        self.state.accumulated_attack = 0
        self.state.accumulated_block = 0
        self._reset_question_state()

        draw = draw_with_reshuffle(self.deck, self.discard, self.config.hand_draw_size, self.rng)
        self.deck, self.discard, self.hand = draw.deck, draw.discard, draw.drawn
        self.selected_uids = []
        if not self.hand:
            logger.info("deck and discard both empty; encounter resolves as won")
            self._victory(reason="out_of_cards")
            return
        self._emit("CARDS_DRAWN", cards=[c.uid for c in self.hand])
        self._set_status("CARD_SELECTION")

    def _pick_card(self, uid: str) -> StepResult:
        if self.state.status != "CARD_SELECTION":
            return _fail("Not selecting cards.")
        if uid not in {c.uid for c in self.hand}:
            return _fail("Card is not available.")
        if uid in self.selected_uids:
            self.selected_uids.remove(uid)
            self._emit("CARD_UNPICKED", card_uid=uid)
            return StepResult(ok=True, events=[])
        if len(self.selected_uids) >= self.max_selectable:
            return _fail("Selection is full.")
        self.selected_uids.append(uid)
        self._emit("CARD_PICKED", card_uid=uid)
        return StepResult(ok=True, events=[])

    def _confirm_selection(self) -> StepResult:
        if self.state.status != "CARD_SELECTION":
            return _fail("Not selecting cards.")
        if len(self.selected_uids) != self.max_selectable:
            return _fail(f"Pick exactly {self.max_selectable} cards.")

        by_uid = {c.uid: c for c in self.hand}
        chosen = [by_uid[uid] for uid in self.selected_uids]
        unchosen = [c for c in self.hand if c.uid not in self.selected_uids]
        self.hand = chosen
        self.discard = discard_hand(unchosen, self.discard)

        self.questions = select_questions_for_cards(
            self.catalog, chosen, self.stats, self.rng, self.config.time_limits
        )
        self.question_index = 0
        self._emit("SELECTION_CONFIRMED", cards=[c.uid for c in chosen])
        self._begin_question()
        return StepResult(ok=True, events=[])

    # ------------------------------------------------------------ question

    def _begin_question(self) -> None:
        sentence = self.questions[self.question_index]
        self.blocks = sentence.blank_blocks()
        self.time_left_ds = int(round(sentence.time_limit * 10))
        self.feedback = None
        self._set_status("PLAYING")
        self._cancel_countdown()
        self._countdown = self.scheduler.schedule_interval(
            self.config.countdown_tick_ms, self._on_countdown_tick, "countdown"
        )
        self._emit("QUESTION_STARTED", question_id=sentence.id, index=self.question_index)

    def _cancel_countdown(self) -> None:
        self.scheduler.cancel(self._countdown)
        self._countdown = None

    def _on_countdown_tick(self) -> None:
        if self.state.status != "PLAYING":
            self._cancel_countdown()
            return
        self.time_left_ds = max(0, self.time_left_ds - 1)
        if self.time_left_ds == 0:
            self._emit("TIMED_OUT", question_id=self.questions[self.question_index].id)
            # reads the live blocks, not a copy taken when the timer started
            self._grade_current()

    def _select_role(self, index: int, role: str) -> StepResult:
        if self.state.status != "PLAYING":
            return _fail("Not answering a question.")
        if role not in ROLES:
            return _fail("Unknown role.")
        if index < 0 or index >= len(self.blocks):
            return _fail("Invalid block index.")
        block = self.blocks[index]
        new_type = None if block.selected_type == role else role
        blocks = list(self.blocks)
        blocks[index] = replace(block, selected_type=new_type)
        self.blocks = tuple(blocks)
        return StepResult(ok=True, events=[])

    def _submit_answer(self) -> StepResult:
        if self.state.status != "PLAYING":
            return _fail("Not answering a question.")
        self._grade_current()
        return StepResult(ok=True, events=[])

    def _grade_current(self) -> None:
        self._cancel_countdown()
        sentence = self.questions[self.question_index]
        card = self.hand[self.question_index]
        feedback = score_answer(sentence, self.blocks, card, self.time_left, self.stats, now=self.clock())
        self.feedback = feedback
        self.results.append(feedback.result)

        st = self.state
        st.accumulated_attack += feedback.result.attack
        st.accumulated_block += feedback.result.block
        if feedback.is_perfect:
            st.perfects_in_round += 1
            st.combo += 1
        else:
            st.combo = 0

        self._set_status("FEEDBACK")
        self._emit(
            "ANSWER_GRADED",
            question_id=sentence.id,
            card_uid=card.uid,
            perfect=feedback.is_perfect,
            accuracy=feedback.accuracy,
            time_multiplier=feedback.time_multiplier,
        )

    def _continue(self) -> StepResult:
        if self.state.status == "VICTORY":
            self._leave_victory()
            return StepResult(ok=True, events=[])
        if self.state.status != "FEEDBACK" or self.feedback is None:
            return _fail("No feedback to continue from.")

        self.feedback = None
        self.state.round_progress += 1

        self.enemies, spawned = combat.maybe_spawn(
            self.enemies,
            self.state.level,
            self.rng,
            chance=self.config.spawn_chance,
            base_hp=self.config.enemy_base_hp,
        )
        if spawned:
            self._emit("ENEMIES_SPAWNED", enemies=[e.id for e in spawned])
            logger.debug("{} reinforcement(s) spawned", len(spawned))

        delay = self.config.next_question_delay_ms
        if self.question_index + 1 < len(self.hand):
            self.scheduler.schedule(delay, self._next_question, "next_question")
        else:
            self.scheduler.schedule(delay, self._player_attack_phase, "player_attack")
        return StepResult(ok=True, events=[])

    def _next_question(self) -> None:
        self.question_index += 1
        self._begin_question()

    # -------------------------------------------------------------- combat

    def _player_attack_phase(self) -> None:
        self._set_status("PLAYER_ATTACK")
        self.hero = replace(self.hero, is_attacking=True)
        self.scheduler.schedule(self.config.player_hit_delay_ms, self._resolve_player_attack, "player_hit")

    def _resolve_player_attack(self) -> None:
        resolution = combat.aggregate_results(self.results)
        self.results = []
        self.last_resolution = resolution

        self.hero, healed = combat.apply_defense(self.hero, resolution)
        outcome = combat.apply_player_attack(
            self.enemies, resolution.final_attack, resolution.total_attack_count
        )
        self.enemies = outcome.enemies
        if outcome.hits > 0:
            self.state.score += resolution.final_attack

        self._emit(
            "PLAYER_ATTACK",
            final_attack=resolution.final_attack,
            targets=outcome.hits,
            final_block=resolution.final_block,
            healed=healed,
        )
        self.scheduler.schedule(self.config.purge_delay_ms, self._after_player_attack, "purge")

    def _after_player_attack(self) -> None:
        self.hero = replace(self.hero, is_attacking=False)
        before = len(self.enemies)
        self.enemies = combat.purge_dead(self.enemies)
        if before != len(self.enemies):
            self._emit("ENEMIES_DEFEATED", count=before - len(self.enemies))
        if not self.enemies:
            self._victory(reason="enemies_defeated")
            return
        self._set_status("ENEMY_ATTACK")
        self.scheduler.schedule(self.config.enemy_windup_ms, self._enemy_windup, "enemy_windup")

    def _enemy_windup(self) -> None:
        self.enemies = tuple(replace(e, is_attacking=True) for e in self.enemies)
        self.scheduler.schedule(self.config.enemy_hit_delay_ms, self._resolve_enemy_turn, "enemy_hit")

    def _resolve_enemy_turn(self) -> None:
        outcome = combat.resolve_enemy_turn(self.hero, self.enemies)
        self.hero = outcome.hero
        self.enemies = tuple(replace(e, is_attacking=False) for e in outcome.enemies)
        self._emit(
            "ENEMY_ATTACK",
            damage=outcome.total_damage,
            absorbed=outcome.absorbed,
            hp_lost=outcome.hp_lost,
        )
        self.scheduler.schedule(self.config.enemy_resolve_delay_ms, self._after_enemy_turn, "enemy_resolve")

    def _after_enemy_turn(self) -> None:
        self.hero = replace(self.hero, is_hit=False)
        self._discard_round()
        if self.hero.current_hp <= 0:
            self._set_status("GAMEOVER")
            self._emit("GAME_OVER", floor=self._floor(), score=self.state.score)
            logger.info("hero defeated on floor {} (score {})", self._floor(), self.state.score)
            return
        self.enemies = combat.assign_intents(self.enemies, self.rng)
        self._start_round()

    def _discard_round(self) -> None:
        self.discard = discard_hand(self.hand, self.discard)
        self.hand = []
        self.selected_uids = []

    def _floor(self) -> int:
        return self.map_state.floor if self.map_state is not None else 0

    # ------------------------------------------------------------- victory

    def _victory(self, reason: str) -> None:
        self._discard_round()
        self._reset_question_state()
        node_id = self.map_state.current_node_id if self.map_state is not None else None
        if self.map_state is not None and node_id is not None:
            self.map_state = mapgen.complete_node(self.map_state, node_id)
        self._set_status("VICTORY")
        self._emit("VICTORY", node_id=node_id, reason=reason)
        logger.info("encounter won at {} ({})", node_id, reason)

    def _leave_victory(self) -> None:
        assert self.map_state is not None
        node = self.map_state.current_node
        self.enemies = ()
        self.encounter = None
        if node is not None and node.type == "BOSS":
            floor = self.map_state.floor + 1
            self.map_state = mapgen.generate_floor_map(floor)
            self.state.level += 1
            self._emit("FLOOR_ADVANCED", floor=floor)
            logger.info("advanced to floor {}", floor)
        self._set_status("MAP")
