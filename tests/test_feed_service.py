import pytest

from core.services.workers_ai import WorkersAIError
from systems.khulark.core.decision import server_fallback_decision
from systems.khulark.core.feed_service import (
    DecisionParseError,
    DetectionError,
    FeedPhotoService,
    filter_labels,
    interpret_model_output,
    parse_detections,
)
from systems.khulark.core.models import FeedStage


def test_parse_detections_skips_malformed_entries():
    dets = parse_detections(
        [
            {"label": "cup", "score": 0.8, "box": {"xmin": 0, "ymin": 0, "xmax": 1, "ymax": 1}},
            {"label": "no score"},
            "garbage",
            {"label": "mouse", "score": "0.7"},
        ],
    )
    assert [d.label for d in dets] == ["cup", "mouse"]


def test_parse_detections_none_is_empty():
    assert parse_detections(None) == []


def test_parse_detections_rejects_non_list():
    with pytest.raises(DetectionError):
        parse_detections({"label": "cup"})


def test_filter_labels_is_strictly_above_threshold_and_keeps_order():
    dets = parse_detections(
        [
            {"label": "pizza", "score": 0.93},
            {"label": "edge", "score": 0.5},
            {"label": "fork", "score": 0.32},
            {"label": "table", "score": 0.51},
        ],
    )
    assert filter_labels(dets, 0.5) == ["pizza", "table"]


def test_interpret_nested_response_object():
    decision = interpret_model_output(
        {"response": {"hunger": 12, "affection": 3, "sanity": -2, "speech": "Yum", "alertText": "It ate."}},
    )
    assert (decision.hunger, decision.affection, decision.sanity) == (12, 3, -2)
    assert decision.alert_text == "It ate."


def test_interpret_text_with_surrounding_prose():
    raw = {
        "response": 'Sure! ```json\n{"hunger": 5, "affection": 1, "sanity": 0, '
        '"speech": "crunchy {bits}", "alertText": "The khulark crunches."}\n``` enjoy',
    }
    decision = interpret_model_output(raw)
    assert decision.hunger == 5
    assert decision.speech == "crunchy {bits}"


@pytest.mark.parametrize("raw", [{"response": "I refuse to answer."}, "no json here", {"response": ""}])
def test_interpret_without_json_raises(raw):
    with pytest.raises(DecisionParseError):
        interpret_model_output(raw)


def test_interpret_clamps_extreme_values():
    decision = interpret_model_output(
        {"response": {"hunger": 500, "affection": -90, "sanity": "lots", "speech": "x" * 300}},
    )
    assert decision.hunger == 30
    assert decision.affection == -20
    assert decision.sanity == 0
    assert len(decision.speech) == 100
    assert decision.alert_text == ""


# ---------------------------------------------------------------------
# FeedPhotoService.run
# ---------------------------------------------------------------------


@pytest.mark.asyncio
async def test_run_happy_path(fake_runner, test_settings):
    outcome = await FeedPhotoService(fake_runner, test_settings).run(b"jpeg-bytes")

    assert outcome.stage is FeedStage.responded
    assert outcome.used_fallback is False
    assert outcome.labels == ["pizza", "dining table"]
    assert outcome.decision.to_payload() == {
        "hunger": 20,
        "affection": 10,
        "sanity": 5,
        "speech": "Cheesy! I love it.",
        "alertText": "The khulark devours the pizza slice with delight.",
    }

    (kind, det_model, image), (_, llm_model, payload) = fake_runner.calls
    assert (kind, det_model, image) == ("binary", "test/detector", b"jpeg-bytes")
    assert llm_model == "test/llm"
    system, user = payload["messages"]
    assert system["role"] == "system"
    assert "pizza, dining table" in system["content"]
    assert "fork" not in system["content"]
    assert user == {"role": "user", "content": "What do you eat from this photo?"}


@pytest.mark.asyncio
async def test_no_detections_still_asks_the_language_model(runner_factory, test_settings):
    runner = runner_factory(
        detections=[],
        llm_result={"response": '{"hunger": 1, "affection": 0, "sanity": 0, "speech": "hm", "alertText": "hm"}'},
    )

    outcome = await FeedPhotoService(runner, test_settings).run(b"img")

    assert outcome.labels == []
    assert outcome.decision.hunger == 1
    assert "nothing recognisable" in runner.calls[1][2]["messages"][0]["content"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"detect_error": WorkersAIError("Workers AI error: 500", status_code=500)},
        {"detections": [{"label": "cup", "score": 0.9}], "llm_error": WorkersAIError("boom")},
        {"detections": {"not": "a list"}},
        {"detections": [{"label": "cup", "score": 0.9}], "llm_result": {"response": "I won't."}},
    ],
)
async def test_any_failure_serves_the_fallback(runner_factory, test_settings, kwargs):
    outcome = await FeedPhotoService(runner_factory(**kwargs), test_settings).run(b"img")

    assert outcome.used_fallback is True
    assert outcome.stage is FeedStage.fallback_responded
    assert outcome.decision == server_fallback_decision()
    assert outcome.error


@pytest.mark.asyncio
async def test_fallback_keeps_labels_seen_before_failure(runner_factory, test_settings):
    runner = runner_factory(detections=[{"label": "cup", "score": 0.9}], llm_error=RuntimeError("timeout"))
    outcome = await FeedPhotoService(runner, test_settings).run(b"img")
    assert outcome.labels == ["cup"]
