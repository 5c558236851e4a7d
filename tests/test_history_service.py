"""Batch history tests."""

from __future__ import annotations

import pytest

from modules.pipelines.task_types import TaskType
from modules.services.history_service import BatchHistory


def test_add_assigns_result_ids_and_newest_first():
    history = BatchHistory()

    first = history.add(TaskType.FACADE, "first", [("in-a", "out-a")])
    second = history.add(TaskType.MATERIAL, "second", [("in-b", "out-b"), ("in-c", "out-c")], ["ref"])

    assert [batch.id for batch in history.list()] == [second.id, first.id]
    assert [result.id for result in second.results] == [f"{second.id}-0", f"{second.id}-1"]
    assert second.reference_images == ["ref"]
    assert second.results[1].input_image == "in-c"


def test_history_keeps_twenty_most_recent():
    history = BatchHistory(max_batches=20)
    batches = [history.add(TaskType.PERSPECTIVE, f"p{i}", [(None, f"out{i}")]) for i in range(25)]

    kept = history.list()

    assert len(kept) == 20
    assert kept[0].id == batches[-1].id
    assert kept[-1].id == batches[5].id
    with pytest.raises(KeyError):
        history.get(batches[0].id)


def test_feedback_and_clear():
    history = BatchHistory()
    batch = history.add(TaskType.PERSPECTIVE, "p", [(None, "out")])
    result_id = batch.results[0].id

    history.set_feedback(result_id, "like")
    assert history.get(batch.id).results[0].feedback == "like"
    history.set_feedback(result_id, None)
    assert history.find_result(result_id).feedback is None
    with pytest.raises(ValueError):
        history.set_feedback(result_id, "love")

    history.clear()
    assert history.list() == []
    assert len(history) == 0
