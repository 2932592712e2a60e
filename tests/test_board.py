"""Tests for the pure board fold and the prompt builder."""

from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from memboard.memory.board import BoardState, Entities, SummaryUpdate, empty_state, next_board_state
from memboard.memory.summarizer import _format_messages, build_prompt


@dataclass
class Msg:
    id: int
    role: str
    content: str
    created_at: datetime


NOW = datetime(2026, 2, 1, 12, 0, 0)


def _msgs(n: int, start_id: int = 1) -> list[Msg]:
    return [Msg(start_id + i, "user" if i % 2 == 0 else "assistant", f"text {i}", NOW) for i in range(n)]


def test_first_fold_creates_board_with_message_count():
    prior = empty_state(uuid4())
    update = SummaryUpdate(summary="  Planning a trip.  ", facts=["Goes to Lisbon"], notes=" likes trains ")

    state = next_board_state(prior, update, _msgs(5), NOW)

    assert state.exists
    assert state.message_count == 5
    assert state.summary == "Planning a trip."
    assert state.important_facts == ("Goes to Lisbon",)
    assert state.context_notes == "likes trains"
    assert state.last_updated == NOW


def test_fold_replaces_every_text_field_and_adds_count():
    cid = uuid4()
    prior = BoardState(
        conversation_id=cid,
        summary="old",
        important_facts=("old fact",),
        action_items=("old item",),
        pending_questions=("old question?",),
        context_notes="old notes",
        message_count=5,
    )
    update = SummaryUpdate(summary="new", facts=["new fact"], action_items=[], pending_questions=[], notes="")

    state = next_board_state(prior, update, _msgs(3, start_id=6), NOW)

    assert state.summary == "new"
    assert state.important_facts == ("new fact",)
    assert state.action_items == ()
    assert state.pending_questions == ()
    assert state.context_notes == ""
    assert state.message_count == 8
    # prior is untouched
    assert prior.summary == "old"
    assert prior.message_count == 5


def test_fold_cleans_lists():
    update = SummaryUpdate(summary="s", facts=["a", " a ", "", "b", "a"], action_items=["  ", "x"])
    state = next_board_state(empty_state(uuid4()), update, _msgs(1), NOW)
    assert state.important_facts == ("a", "b")
    assert state.action_items == ("x",)


def test_fold_carries_entities():
    update = SummaryUpdate(
        summary="s",
        entities=Entities(people=["Carlos", "Carlos "], organizations=["Inmobiliaria X"]),
    )
    state = next_board_state(empty_state(uuid4()), update, _msgs(1), NOW)
    assert state.entities == {
        "people": ["Carlos"],
        "places": [],
        "organizations": ["Inmobiliaria X"],
        "dates": [],
    }


def test_fold_without_messages_is_identity():
    prior = BoardState(conversation_id=uuid4(), summary="keep", message_count=7)
    assert next_board_state(prior, SummaryUpdate(summary="ignored"), [], NOW) is prior


def test_message_count_never_decreases_over_folds():
    state = empty_state(uuid4())
    counts = []
    for batch in (5, 1, 7, 2):
        state = next_board_state(state, SummaryUpdate(summary="s"), _msgs(batch), NOW)
        counts.append(state.message_count)
    assert counts == sorted(counts)
    assert counts[-1] == 15


def test_build_prompt_full_when_no_summary():
    prompt = build_prompt(empty_state(uuid4()), _msgs(2))
    assert "creating the summary board" in prompt
    assert "[user]: text 0" in prompt
    assert "PREVIOUS SUMMARY" not in prompt


def test_build_prompt_incremental_includes_seed():
    seed = BoardState(
        conversation_id=uuid4(),
        summary="They discussed budgets.",
        important_facts=("Budget is 10k",),
        message_count=5,
    )
    prompt = build_prompt(seed, _msgs(1))
    assert "PREVIOUS SUMMARY:\nThey discussed budgets." in prompt
    assert "- Budget is 10k" in prompt
    assert "PREVIOUS ACTION ITEMS:\n(none)" in prompt


def test_format_messages_internal():
    """_format_messages produces [role]: content lines."""
    out = _format_messages(_msgs(2))
    assert out == "[user]: text 0\n[assistant]: text 1"
