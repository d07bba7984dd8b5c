from __future__ import annotations

from wordwarrior.engine.actions import (
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
from wordwarrior.engine.game import GameConfig, GameSession
from wordwarrior.engine.selector import InMemoryStatsStore
from wordwarrior.engine.types import ROLES, CardDatabase
from wordwarrior.paths import get_paths
from wordwarrior.services.content import ContentService

DECK_SIZE = 15


def _session(seed: int = 5, **config: object) -> GameSession:
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    cfg = GameConfig(**{"enemy_base_hp": 10, "spawn_chance": 0.0, **config})  # type: ignore[arg-type]
    return GameSession(
        content.load_cards_db(),
        content.load_quiz_catalog(),
        InMemoryStatsStore(),
        seed=seed,
        config=cfg,
        clock=lambda: 1000.0,
    )


def _types(events: list[dict[str, object]]) -> list[object]:
    return [e["type"] for e in events]


def _pick_attack_first(s: GameSession) -> None:
    order = {"ATTACK": 0, "DEFENSE": 1, "SKILL": 2}
    ranked = sorted(s.hand, key=lambda c: order[c.type])
    for card in ranked[: s.max_selectable]:
        assert s.step(PickCardAction(card_uid=card.uid)).ok


def _answer_perfectly(s: GameSession) -> None:
    sentence = s.current_sentence
    assert sentence is not None
    for role in ROLES:
        for idx in sentence.analysis.indices_for(role):
            assert s.step(SelectRoleAction(block_index=idx, role=role)).ok
    assert s.step(SubmitAnswerAction()).ok


def _play_round(s: GameSession, perfect: bool = True) -> None:
    _pick_attack_first(s)
    assert s.step(ConfirmSelectionAction()).ok
    for _ in range(len(s.hand)):
        assert s.state.status == "PLAYING"
        if perfect:
            _answer_perfectly(s)
        else:
            assert s.step(SubmitAnswerAction()).ok
        assert s.step(ContinueAction()).ok
        s.settle()


def _enter_first_battle(s: GameSession) -> None:
    assert s.step(StartGameAction()).ok
    assert s.step(EnterNodeAction()).ok
    assert s.state.status == "CARD_SELECTION"


def test_start_game_builds_deck_and_map() -> None:
    s = _session()
    assert s.state.status == "START"

    res = s.step(StartGameAction())

    assert res.ok
    assert _types(res.events) == ["GAME_STARTED"]
    assert s.state.status == "MAP"
    assert s.state.level == 1
    assert len(s.deck) == DECK_SIZE
    assert s.hero.current_hp == s.hero.max_hp == 500
    assert s.map_state is not None and s.map_state.floor == 1


def test_actions_are_gated_on_status() -> None:
    s = _session()
    assert not s.step(SubmitAnswerAction()).ok
    assert not s.step(EnterNodeAction()).ok

    s.step(StartGameAction())
    assert not s.step(ContinueAction()).ok
    assert not s.step(PauseAction()).ok
    assert not s.step(ResumeAction()).ok
    assert not s.step(ConfirmSelectionAction()).ok
    # the first node has to be cleared before moving on
    res = s.step(MoveToNodeAction(node_id="node_1_1"))
    assert not res.ok and res.error == "Finish the current node first."
    assert not s.step(StartGameAction()).ok

    s.step(EnterNodeAction())
    uid = s.hand[0].uid
    s.step(PickCardAction(card_uid=uid))
    deck_before = [c.uid for c in s.all_cards()]
    res = s.step(StartGameAction())
    assert not res.ok and res.error == "A run is already in progress."
    assert s.state.status == "CARD_SELECTION"
    assert s.selected_uids == [uid]
    assert [c.uid for c in s.all_cards()] == deck_before


def test_card_selection_rules() -> None:
    s = _session()
    _enter_first_battle(s)

    assert len(s.hand) == 8
    assert len(s.deck) == DECK_SIZE - 8
    assert s.max_selectable == 5
    assert len(s.enemies) == 1 and s.enemies[0].current_hp == 10

    uids = [c.uid for c in s.hand]
    for uid in uids[:4]:
        assert s.step(PickCardAction(card_uid=uid)).ok
    assert not s.step(ConfirmSelectionAction()).ok

    # toggling a picked card removes it again
    assert s.step(PickCardAction(card_uid=uids[0])).ok
    assert uids[0] not in s.selected_uids
    assert s.step(PickCardAction(card_uid=uids[0])).ok

    assert s.step(PickCardAction(card_uid=uids[4])).ok
    res = s.step(PickCardAction(card_uid=uids[5]))
    assert not res.ok and res.error == "Selection is full."
    assert not s.step(PickCardAction(card_uid="no-such-card")).ok

    assert s.step(ConfirmSelectionAction()).ok
    assert s.state.status == "PLAYING"
    assert [c.uid for c in s.hand] == s.selected_uids
    assert len(s.discard) == 3
    assert len(s.questions) == 5
    assert len(s.all_cards()) == DECK_SIZE


def test_questions_use_time_limit_of_card_rarity() -> None:
    s = _session()
    _enter_first_battle(s)
    _pick_attack_first(s)
    s.step(ConfirmSelectionAction())

    for card, sentence in zip(s.hand, s.questions):
        assert sentence.time_limit == {"R": 30.0, "SR": 25.0, "UR": 20.0}[card.rarity]
    assert s.time_left == s.questions[0].time_limit


def test_select_role_toggles_and_validates() -> None:
    s = _session()
    _enter_first_battle(s)
    _pick_attack_first(s)
    s.step(ConfirmSelectionAction())

    assert s.step(SelectRoleAction(block_index=0, role="VERB")).ok
    assert s.blocks[0].selected_type == "VERB"
    assert s.step(SelectRoleAction(block_index=0, role="SUBJECT")).ok
    assert s.blocks[0].selected_type == "SUBJECT"
    assert s.step(SelectRoleAction(block_index=0, role="SUBJECT")).ok
    assert s.blocks[0].selected_type is None

    assert not s.step(SelectRoleAction(block_index=len(s.blocks), role="VERB")).ok
    assert not s.step(SelectRoleAction(block_index=0, role="ADVERB")).ok  # type: ignore[arg-type]


def test_perfect_round_defeats_enemy_and_returns_to_map() -> None:
    s = _session()
    _enter_first_battle(s)

    _play_round(s, perfect=True)

    assert s.state.status == "VICTORY"
    assert s.state.combo == 5
    assert s.state.perfects_in_round == 5
    assert s.state.round_progress == 5
    assert s.state.score > 0
    assert s.enemies == ()
    assert s.hand == []
    assert len(s.all_cards()) == DECK_SIZE
    assert s.map_state is not None and s.map_state.nodes[0].completed
    victory = [e for e in s.event_log if e["type"] == "VICTORY"]
    assert victory[-1]["reason"] == "enemies_defeated"

    assert s.step(ContinueAction()).ok
    assert s.state.status == "MAP"

    res = s.step(MoveToNodeAction(node_id="node_1_5"))
    assert not res.ok
    assert s.map_state.current_node_id == "node_1_0"

    res = s.step(MoveToNodeAction(node_id="node_1_1"))
    assert res.ok
    assert "ENCOUNTER_STARTED" in _types(res.events)
    assert s.state.status == "CARD_SELECTION"
    assert len(s.all_cards()) == DECK_SIZE


def test_wrong_answers_break_combo_and_enemy_strikes_back() -> None:
    s = _session(enemy_base_hp=10_000)
    _enter_first_battle(s)
    hp_before = s.hero.current_hp

    _play_round(s, perfect=False)

    assert s.state.combo == 0
    assert s.state.score == 0
    assert s.enemies[0].current_hp == 10_000
    enemy_turns = [e for e in s.event_log if e["type"] == "ENEMY_ATTACK"]
    assert len(enemy_turns) == 1
    assert s.hero.current_hp == hp_before - enemy_turns[0]["hp_lost"]
    # next round starts right away
    assert s.state.status == "CARD_SELECTION"
    assert len(s.hand) == 8
    assert len(s.all_cards()) == DECK_SIZE


def test_hero_death_ends_the_run() -> None:
    s = _session(hero_hp=1, enemy_base_hp=10_000)
    _enter_first_battle(s)

    for _ in range(30):
        _play_round(s, perfect=False)
        if s.state.status == "GAMEOVER":
            break

    assert s.state.status == "GAMEOVER"
    assert s.hero.current_hp == 0
    assert "GAME_OVER" in _types(s.event_log)
    assert not s.step(ContinueAction()).ok
    assert s.step(StartGameAction()).ok
    assert s.state.status == "MAP"
    assert s.hero.current_hp == 1


def test_countdown_times_out_with_live_blocks() -> None:
    s = _session()
    _enter_first_battle(s)
    _pick_attack_first(s)
    s.step(ConfirmSelectionAction())
    sentence = s.current_sentence
    assert sentence is not None
    s.step(SelectRoleAction(block_index=0, role="HELPER"))

    s.advance(int(sentence.time_limit * 1000) - 100)
    assert s.state.status == "PLAYING"
    assert s.time_left == 0.1
    s.step(SelectRoleAction(block_index=1, role="OBJECT"))

    s.advance(100)

    assert s.state.status == "FEEDBACK"
    assert s.time_left == 0
    assert s.feedback is not None
    assert s.feedback.time_multiplier == 1.0
    assert s.feedback.user_blocks[0].selected_type == "HELPER"
    assert s.feedback.user_blocks[1].selected_type == "OBJECT"
    assert _types(s.event_log)[-2:] == ["TIMED_OUT", "ANSWER_GRADED"]

    # no second grading once the countdown has stopped
    s.advance(10_000)
    assert _types(s.event_log).count("ANSWER_GRADED") == 1


def test_pause_freezes_the_countdown() -> None:
    s = _session()
    _enter_first_battle(s)
    _pick_attack_first(s)
    s.step(ConfirmSelectionAction())
    limit = s.questions[0].time_limit

    s.advance(250)
    assert abs(s.time_left - (limit - 0.2)) < 1e-9

    assert s.step(PauseAction()).ok
    assert s.state.status == "PAUSED"
    assert s.paused_from == "PLAYING"
    assert s.advance(5000) == 0
    assert abs(s.time_left - (limit - 0.2)) < 1e-9
    assert not s.step(SelectRoleAction(block_index=0, role="VERB")).ok
    assert not s.step(SubmitAnswerAction()).ok
    assert not s.step(PauseAction()).ok

    assert s.step(ResumeAction()).ok
    assert s.state.status == "PLAYING"
    s.advance(1000)
    assert abs(s.time_left - (limit - 1.2)) < 1e-9


def test_pause_during_feedback_holds_the_next_question() -> None:
    s = _session()
    _enter_first_battle(s)
    _pick_attack_first(s)
    s.step(ConfirmSelectionAction())
    s.step(SubmitAnswerAction())
    s.step(ContinueAction())
    assert s.awaiting_timer()

    assert s.step(PauseAction()).ok
    assert s.settle() == 0
    assert s.question_index == 0

    assert s.step(ResumeAction()).ok
    assert s.state.status == "FEEDBACK"
    s.settle()
    assert s.state.status == "PLAYING"
    assert s.question_index == 1


def test_reinforcements_join_mid_round() -> None:
    s = _session(enemy_base_hp=10_000, spawn_chance=1.0)
    _enter_first_battle(s)
    _pick_attack_first(s)
    s.step(ConfirmSelectionAction())
    s.step(SubmitAnswerAction())

    res = s.step(ContinueAction())

    assert res.ok
    spawned = [e for e in res.events if e["type"] == "ENEMIES_SPAWNED"]
    assert len(spawned) == 1
    assert 2 <= len(s.enemies) <= 3
    assert all(e.intent != "UNKNOWN" for e in s.enemies)


def test_empty_deck_wins_the_encounter() -> None:
    s = _session()
    s.cards = CardDatabase(cards=s.cards.cards, starter_deck=())
    assert s.step(StartGameAction()).ok

    res = s.step(EnterNodeAction())

    assert res.ok
    assert s.state.status == "VICTORY"
    assert res.events[-1]["type"] == "VICTORY"
    assert res.events[-1]["reason"] == "out_of_cards"


def test_quit_returns_to_start() -> None:
    s = _session()
    _enter_first_battle(s)
    _pick_attack_first(s)
    s.step(ConfirmSelectionAction())

    assert s.step(QuitAction()).ok
    assert s.state.status == "START"
    assert s.scheduler.pending() == []
    assert s.step(StartGameAction()).ok
    assert s.state.status == "MAP"
