"""Tests for the working memory chunking policy."""

from dataclasses import dataclass
from datetime import datetime

import pytest

from memboard.memory.chunking import build_chunks, chunk_type, importance_score, partition_messages


@dataclass
class Msg:
    id: int
    role: str
    content: str
    created_at: datetime = datetime(2026, 1, 1)


def _msgs(contents):
    return [Msg(i + 1, "user" if i % 2 == 0 else "assistant", c) for i, c in enumerate(contents)]


def test_partition_fixed_groups():
    groups = partition_messages(_msgs(["m"] * 12), 5)
    assert [len(g) for g in groups] == [5, 5, 2]


def test_partition_rejects_non_positive_size():
    with pytest.raises(ValueError):
        partition_messages(_msgs(["m"]), 0)


def test_build_chunks_indexes_and_spans():
    msgs = _msgs([f"line {i}" for i in range(7)])
    drafts = build_chunks(msgs, start_index=3, size=5)

    assert [d.chunk_index for d in drafts] == [3, 4]
    assert drafts[0].message_ids == (1, 2, 3, 4, 5)
    assert drafts[1].message_ids == (6, 7)
    assert drafts[0].text.splitlines()[0] == "[user]: line 0"
    assert drafts[0].text.splitlines()[1] == "[assistant]: line 1"
    # spans never overlap
    all_ids = [i for d in drafts for i in d.message_ids]
    assert len(all_ids) == len(set(all_ids)) == 7


def test_importance_score_heuristic():
    assert importance_score(_msgs(["hello"])) == 0.5
    assert importance_score(_msgs(["where is it?"])) == 0.6
    assert importance_score(_msgs(["call the tool?", "x" * 201])) == 0.8
    assert importance_score(_msgs(["why?"] * 10)) == 1.0


@pytest.mark.parametrize(
    "contents,expected",
    [
        (["Can you help?"], "question"),
        (["Add a task for Monday"], "action"),
        (["The capital is Paris"], "fact"),
        (["hello", "hi"], "dialogue"),
    ],
)
def test_chunk_type(contents, expected):
    assert chunk_type(_msgs(contents)) == expected
