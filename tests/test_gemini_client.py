"""GeminiClient tests with a fake google-genai module."""

from __future__ import annotations

import base64
from types import SimpleNamespace

import pytest

from modules.pipelines import gemini_client
from modules.pipelines.errors import MissingApiKeyError, NoContentGeneratedError
from modules.pipelines.gemini_client import ContentPart, DispatchPayload, GeminiClient


def _record(name):
    def factory(**kwargs):
        return SimpleNamespace(kind=name, **kwargs)

    return factory


class FakeModels:
    def __init__(self, response) -> None:
        self.response = response
        self.calls: list[dict] = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        return self.response


def _response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def _image_part(data: bytes = b"png-bytes", mime_type="image/png"):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)


def _text_part(text: str, thought: bool = False):
    return SimpleNamespace(inline_data=None, text=text, thought=thought)


@pytest.fixture
def fake_genai(monkeypatch):
    state = SimpleNamespace(models=FakeModels(_response(_image_part())), api_keys=[])

    def make_client(api_key):
        state.api_keys.append(api_key)
        return SimpleNamespace(models=state.models)

    fake = SimpleNamespace(
        Client=make_client,
        types=SimpleNamespace(
            Part=SimpleNamespace(from_bytes=_record("bytes"), from_text=_record("text")),
            Content=_record("content"),
            GenerateContentConfig=_record("config"),
            ImageConfig=_record("image_config"),
            Tool=_record("tool"),
            GoogleSearch=_record("google_search"),
        ),
    )
    monkeypatch.setattr(gemini_client, "genai", fake)
    return state


def _payload(**overrides) -> DispatchPayload:
    values = dict(
        model="gemini-3-pro-image-preview",
        parts=[ContentPart.from_image("data:image/jpeg;base64,QUJD"), ContentPart.from_text("prompt")],
        aspect_ratio="16:9",
        image_size="2K",
    )
    values.update(overrides)
    return DispatchPayload(**values)


def test_missing_api_key_raises_before_any_call(fake_genai):
    client = GeminiClient(None)

    with pytest.raises(MissingApiKeyError):
        client.dispatch(_payload())
    assert fake_genai.models.calls == []


def test_dispatch_sends_one_request_and_returns_data_uri(fake_genai):
    client = GeminiClient("key-123")

    result = client.dispatch(_payload())

    assert fake_genai.api_keys == ["key-123"]
    assert len(fake_genai.models.calls) == 1
    call = fake_genai.models.calls[0]
    assert call["model"] == "gemini-3-pro-image-preview"
    content = call["contents"][0]
    assert content.role == "user"
    assert content.parts[0].kind == "bytes"
    assert content.parts[0].data == b"ABC"
    assert content.parts[0].mime_type == "image/jpeg"
    assert content.parts[1].text == "prompt"
    config = call["config"]
    assert config.response_modalities == ["IMAGE", "TEXT"]
    assert config.image_config.aspect_ratio == "16:9"
    assert config.image_config.image_size == "2K"
    assert not hasattr(config, "tools")
    expected = base64.b64encode(b"png-bytes").decode("ascii")
    assert result.image == f"data:image/png;base64,{expected}"


def test_web_search_tool_only_when_requested(fake_genai):
    GeminiClient("key").dispatch(_payload(use_web_search=True))

    config = fake_genai.models.calls[0]["config"]
    assert config.tools[0].google_search.kind == "google_search"


def test_missing_image_raises_no_content(fake_genai):
    fake_genai.models.response = _response(_text_part("I cannot do that"))

    with pytest.raises(NoContentGeneratedError, match="No image generated"):
        GeminiClient("key").dispatch(_payload())


def test_text_dispatch_skips_thoughts(fake_genai):
    fake_genai.models.response = _response(_text_part("thinking...", thought=True), _text_part("Critique"))

    result = GeminiClient("key").dispatch(
        _payload(response_modalities=("TEXT",), aspect_ratio=None, image_size=None, expect_image=False)
    )

    assert result.text == "Critique"
    assert result.image is None


def test_empty_text_response_raises(fake_genai):
    fake_genai.models.response = SimpleNamespace(candidates=[])

    with pytest.raises(NoContentGeneratedError):
        GeminiClient("key").dispatch(_payload(expect_image=False))


def test_extract_result_defaults_mime_and_keeps_first_image():
    response = _response(_image_part(b"one", mime_type=None), _image_part(b"two"))

    result = gemini_client.extract_result(response)

    assert result.image == "data:image/png;base64," + base64.b64encode(b"one").decode("ascii")


def test_set_api_key_rebuilds_client(fake_genai):
    client = GeminiClient("old")
    client.dispatch(_payload())

    client.set_api_key("new")
    client.dispatch(_payload())

    assert fake_genai.api_keys == ["old", "new"]
    assert client.has_api_key
    client.set_api_key("  ")
    assert not client.has_api_key
