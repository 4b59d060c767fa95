from types import SimpleNamespace

import pytest
from botocore.exceptions import ClientError

from bedrock_core.domain.exceptions import (
    CapabilityQueryError,
    DecodeError,
    ModelAccessError,
    TransportError,
)
from bedrock_core.domain.models import ModelCapabilities
from bedrock_core.providers.bedrock_client import ACCESS_HINT, BedrockClient
from bedrock_core.providers.builder import build_model_options

HAIKU = "anthropic.claude-3-haiku-20240307-v1:0"


def _client_error(code, message, operation="InvokeModel"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.mark.asyncio
async def test_sync_path_decodes_once_and_echoes(fake_runtime, fake_control, reply_bytes, collected):
    chunks, sink = collected
    runtime = fake_runtime(replies=[reply_bytes("4")])
    client = BedrockClient(runtime, fake_control(streaming=False), sink=sink)

    text = await client.ask(HAIKU, question="What is 2+2?")

    assert text == "4"
    assert chunks == ["4"]
    call = runtime.calls[0]
    assert call["modelId"] == HAIKU
    assert call["contentType"] == "application/json"
    assert runtime.payload()["messages"][0]["content"][0]["text"] == "What is 2+2?"


@pytest.mark.asyncio
async def test_stream_path_echoes_and_accumulates(fake_runtime, fake_control, make_event, collected):
    chunks, sink = collected
    events = [
        make_event({"type": "message_start", "message": {"id": "m"}}),
        make_event({"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hello"}}),
        make_event({"type": "content_block_delta", "delta": {"type": "text_delta", "text": ", world"}}),
        make_event({"type": "message_delta", "delta": {"stop_reason": "end_turn"}}),
        make_event({"type": "message_stop"}),
    ]
    runtime = fake_runtime(events=events)
    client = BedrockClient(runtime, fake_control(streaming=True), sink=sink)

    text = await client.ask(HAIKU, question="Say hello")

    assert text == "Hello, world"
    assert chunks == ["Hello", ", world"]


@pytest.mark.asyncio
async def test_per_call_sink_overrides_default(fake_runtime, fake_control, reply_bytes, collected):
    default_chunks, default_sink = collected
    own = []
    client = BedrockClient(fake_runtime(replies=[reply_bytes("ok")]), fake_control(), sink=default_sink)
    await client.ask(HAIKU, question="hi", sink=own.append)
    assert own == ["ok"]
    assert default_chunks == []


@pytest.mark.asyncio
async def test_access_denied_carries_region_hint(fake_runtime, fake_control):
    error = _client_error("AccessDeniedException", "You don't have access to the model with the specified model ID.")
    client = BedrockClient(fake_runtime(error=error), fake_control(), sink=lambda _t: None)

    with pytest.raises(ModelAccessError) as exc:
        await client.ask(HAIKU, question="hi")

    assert ACCESS_HINT in str(exc.value)
    assert exc.value.code == "MODEL_ACCESS_DENIED"
    assert exc.value.__cause__ is error


@pytest.mark.asyncio
async def test_other_client_errors_propagate_unchanged(fake_runtime, fake_control):
    error = _client_error("ThrottlingException", "Too many requests")
    client = BedrockClient(fake_runtime(error=error), fake_control(), sink=lambda _t: None)

    with pytest.raises(ClientError) as exc:
        await client.ask(HAIKU, question="hi")
    assert exc.value is error


@pytest.mark.asyncio
async def test_stream_error_event_raises_transport_error(fake_runtime, fake_control, make_event):
    events = [
        make_event({"type": "content_block_delta", "delta": {"type": "text_delta", "text": "par"}}),
        {"modelStreamErrorException": {"message": "model crashed"}},
    ]
    client = BedrockClient(fake_runtime(events=events), fake_control(streaming=True), sink=lambda _t: None)

    with pytest.raises(TransportError) as exc:
        await client.ask(HAIKU, question="hi")
    assert "model crashed" in str(exc.value)


@pytest.mark.asyncio
async def test_malformed_sync_body_is_decode_error(fake_runtime, fake_control):
    client = BedrockClient(fake_runtime(replies=[b"<html>"]), fake_control(), sink=lambda _t: None)
    with pytest.raises(DecodeError) as exc:
        await client.ask(HAIKU, question="hi")
    assert exc.value.model_id == HAIKU


@pytest.mark.asyncio
async def test_cohere_stream_flag_follows_dispatch_path(fake_runtime, fake_control, make_event):
    runtime = fake_runtime(events=[make_event({"text": "hi", "is_finished": False})])
    client = BedrockClient(runtime, fake_control(), sink=lambda _t: None)
    options = build_model_options("cohere.command-text-v14", question="hello")

    text = await client.invoke(options, ModelCapabilities(streaming=True))

    assert text == "hi"
    assert runtime.payload()["stream"] is True


@pytest.mark.asyncio
async def test_strict_probe_setting_is_honoured(fake_runtime, fake_control):
    error = _client_error("ValidationException", "bad id", "GetFoundationModel")
    cfg = SimpleNamespace(strict_capability_probe=True)
    client = BedrockClient(fake_runtime(), fake_control(error=error), cfg=cfg, sink=lambda _t: None)
    with pytest.raises(CapabilityQueryError):
        await client.capabilities(HAIKU)
