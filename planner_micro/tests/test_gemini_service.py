import asyncio
import base64
import json

import pytest

from planner_micro.services.gemini_service import (
    TUTOR_EMPTY_REPLY,
    TUTOR_OFFLINE_REPLY,
    GeminiService,
    ScheduleParseError,
)
from planner_micro.tests.conftest import StubModel
from planner_micro.tools.inline_attachment import decode_base64_payload

IMAGE = base64.b64encode(b"fake-png-bytes").decode()


def service_with(*replies):
    model = StubModel(list(replies))
    return GeminiService(model_name="stub", model_factory=model), model


def test_missing_api_key_raises(monkeypatch):
    from planner_micro.config import config

    monkeypatch.setattr(config, "GEMINI_API_KEY", "")
    with pytest.raises(ValueError):
        GeminiService()


def test_tutor_reply_uses_history_and_mode():
    service, model = service_with("Try factoring first.")
    history = [{"role": "user", "text": "hi"}, {"role": "model", "text": "hello"}]

    reply = asyncio.run(service.tutor_reply(history, "How do I solve x^2-1=0?", mode="student"))

    assert reply == "Try factoring first."
    assert model.history == [{"role": "user", "parts": ["hi"]}, {"role": "model", "parts": ["hello"]}]
    assert "tutor" in model.calls[0]["system_instruction"]


def test_tutor_reply_with_attachment():
    service, _ = service_with("Looks like a worksheet.")
    reply = asyncio.run(service.tutor_reply([], "What is this?", {"mimeType": "image/png", "data": IMAGE}))
    assert reply == "Looks like a worksheet."


def test_tutor_reply_never_raises():
    service, _ = service_with(RuntimeError("quota exceeded"))
    assert asyncio.run(service.tutor_reply([], "hello")) == TUTOR_OFFLINE_REPLY

    service, _ = service_with("")
    assert asyncio.run(service.tutor_reply([], "hello")) == TUTOR_EMPTY_REPLY


def test_parse_schedule_image_returns_rows():
    rows = [{"day": "Mon", "periodIndex": 0, "subject": "Math", "teacher": "Turner", "room": "101"}]
    service, model = service_with("```json\n" + json.dumps(rows) + "\n```")

    assert asyncio.run(service.parse_schedule_image(IMAGE, "image/png")) == rows
    assert model.calls[0]["generation_config"].response_mime_type == "application/json"


def test_parse_schedule_image_empty_response():
    service, _ = service_with("")
    assert asyncio.run(service.parse_schedule_image(IMAGE, "image/png")) == []


@pytest.mark.parametrize("reply", [RuntimeError("boom"), "not json", json.dumps({"day": "Mon"})])
def test_parse_schedule_image_failures_raise(reply):
    service, _ = service_with(reply)
    with pytest.raises(ScheduleParseError):
        asyncio.run(service.parse_schedule_image(IMAGE, "image/png"))


def test_content_check_verdicts():
    service, _ = service_with(json.dumps({"isSafe": False, "reason": "Bullying"}))
    assert asyncio.run(service.check_content_safety("mean words")) == {"isSafe": False, "reason": "Bullying"}

    service, _ = service_with(RuntimeError("offline"))
    assert asyncio.run(service.check_content_safety("anything")) == {"isSafe": True, "reason": None}


def test_decode_data_url_payload():
    assert decode_base64_payload(f"data:image/png;base64,{IMAGE}") == b"fake-png-bytes"
