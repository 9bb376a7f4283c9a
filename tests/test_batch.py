import threading

import pytest

from app.normalizers import NormalizationResult, NormalizationStatus, normalize_batch, summarize
from app.tabular import add_generic_name_column, build_generic_name_map, extract_column_values


class RecordingNormalizer:
    """Answers from a dict; names listed in `broken` come back as errors."""
    def __init__(self, answers=None, broken=()):
        self.answers = answers or {}
        self.broken = set(broken)
        self.seen = []

    def normalize(self, raw_name):
        self.seen.append(raw_name)
        if raw_name in self.broken:
            return NormalizationResult.error(raw_name, "Timeout: Request timeout after 10000ms")
        if raw_name in self.answers:
            return NormalizationResult.success(raw_name, self.answers[raw_name], "1")
        return NormalizationResult.not_found(raw_name, "not found in vocabulary")


def test_results_in_input_order(rx_client):
    names = ["Lipitor", "xyz-not-a-drug", "Tylenol", "Advil"]
    results = normalize_batch(names, rx_client, sleep=lambda s: None)
    assert [r.original_name for r in results] == names
    assert [r.generic_name for r in results] == ["atorvastatin", None, "acetaminophen", "ibuprofen"]


def test_progress_announces_each_item_then_finishes():
    events = []
    names = ["a", "b", "c"]
    normalize_batch(names, RecordingNormalizer(), events.append, sleep=lambda s: None)

    assert len(events) == len(names) + 1
    assert [(e.completed, e.total, e.current) for e in events] == [
        (0, 3, "a"), (1, 3, "b"), (2, 3, "c"), (3, 3, ""),
    ]
    completed = [e.completed for e in events]
    assert completed == sorted(set(completed))  # strictly increasing
    assert events[-1].percentage == 100.0


def test_progress_fires_before_the_item_is_processed():
    norm = RecordingNormalizer()
    seen_at_announce = []
    normalize_batch(["a", "b"], norm, lambda e: seen_at_announce.append(list(norm.seen)), sleep=lambda s: None)
    assert seen_at_announce == [[], ["a"], ["a", "b"]]


def test_pauses_between_items_only():
    pauses = []
    normalize_batch(["a", "b", "c"], RecordingNormalizer(), sleep=pauses.append)
    assert pauses == [0.1, 0.1]

    pauses.clear()
    normalize_batch(["only"], RecordingNormalizer(), sleep=pauses.append)
    assert pauses == []


def test_no_dedup_inside_batch():
    norm = RecordingNormalizer({"Tylenol": "acetaminophen"})
    results = normalize_batch(["Tylenol", "Tylenol"], norm, sleep=lambda s: None)
    assert len(results) == 2
    assert norm.seen == ["Tylenol", "Tylenol"]


def test_failing_item_does_not_stop_the_batch():
    norm = RecordingNormalizer({"Advil": "ibuprofen", "Lipitor": "atorvastatin"}, broken={"Tylenol"})
    results = normalize_batch(["Advil", "Tylenol", "Lipitor"], norm, sleep=lambda s: None)
    assert [r.status for r in results] == [
        NormalizationStatus.SUCCESS, NormalizationStatus.ERROR, NormalizationStatus.SUCCESS,
    ]
    assert summarize(results) == {"total": 3, "success": 2, "not_found": 0, "error": 1}


def test_empty_batch_only_sends_final_progress():
    events = []
    assert normalize_batch([], RecordingNormalizer(), events.append) == []
    assert [(e.completed, e.total, e.current) for e in events] == [(0, 0, "")]


def test_accepts_any_iterable_of_strings():
    results = normalize_batch((n for n in ["a", "b"]), RecordingNormalizer(), sleep=lambda s: None)
    assert [r.original_name for r in results] == ["a", "b"]


@pytest.mark.parametrize("bad", ["Tylenol", b"Tylenol", 42, None, ["Tylenol", 7]])
def test_misuse_raises_type_error(bad):
    with pytest.raises(TypeError):
        normalize_batch(bad, RecordingNormalizer())


def test_cancel_stops_before_next_item():
    stop = threading.Event()
    norm = RecordingNormalizer()
    events = []

    def on_progress(e):
        events.append(e)
        if e.current == "b":
            stop.set()  # "b" still runs; "c" never starts

    results = normalize_batch(["a", "b", "c"], norm, on_progress, cancel_event=stop, sleep=lambda s: None)
    assert norm.seen == ["a", "b"]
    assert [r.original_name for r in results] == ["a", "b"]
    assert (events[-1].completed, events[-1].total, events[-1].current) == (2, 3, "")


def test_dedup_then_join_back_onto_rows(rx_client):
    rows = [
        {"PATIENT": "001", "DESCRIPTION": "Tylenol"},
        {"PATIENT": "002", "DESCRIPTION": "Tylenol"},
        {"PATIENT": "003", "DESCRIPTION": "Advil"},
    ]
    unique = extract_column_values(rows, "DESCRIPTION")
    assert unique == ["Tylenol", "Advil"]

    results = normalize_batch(unique, rx_client, sleep=lambda s: None)
    assert len(results) == 2

    mapping = build_generic_name_map(results)
    assert set(mapping) == set(unique)

    out = add_generic_name_column(rows, "DESCRIPTION", mapping)
    assert len(out) == 3
    assert out[0]["GENERIC_NAME"] == out[1]["GENERIC_NAME"] == "acetaminophen"
    assert out[2]["GENERIC_NAME"] == "ibuprofen"
