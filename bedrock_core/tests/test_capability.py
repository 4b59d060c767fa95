import pytest
from botocore.exceptions import ClientError

from bedrock_core.domain.exceptions import CapabilityQueryError
from bedrock_core.domain.models import ModelCapabilities
from bedrock_core.providers.capability import probe_capabilities, query_capabilities

HAIKU = "anthropic.claude-3-haiku-20240307-v1:0"


def _not_found():
    return ClientError(
        {"Error": {"Code": "ResourceNotFoundException", "Message": "model not found"}},
        "GetFoundationModel",
    )


@pytest.mark.asyncio
async def test_query_reads_streaming_and_image_support(fake_control):
    control = fake_control(streaming=True, modalities=["TEXT", "IMAGE"])
    caps = await query_capabilities(HAIKU, control)
    assert caps == ModelCapabilities(streaming=True, images=True)
    assert control.calls == [HAIKU]


@pytest.mark.asyncio
async def test_query_is_not_cached(fake_control):
    control = fake_control()
    await probe_capabilities(HAIKU, control)
    await probe_capabilities(HAIKU, control)
    assert len(control.calls) == 2


@pytest.mark.asyncio
async def test_query_failure_raises(fake_control):
    with pytest.raises(CapabilityQueryError) as exc:
        await query_capabilities(HAIKU, fake_control(error=_not_found()))
    assert exc.value.code == "CAPABILITY_QUERY_FAILED"


@pytest.mark.asyncio
async def test_probe_downgrades_failure_to_unsupported(fake_control):
    caps = await probe_capabilities(HAIKU, fake_control(error=_not_found()))
    assert caps == ModelCapabilities(streaming=False, images=False)


@pytest.mark.asyncio
async def test_probe_strict_mode_propagates(fake_control):
    with pytest.raises(CapabilityQueryError):
        await probe_capabilities(HAIKU, fake_control(error=_not_found()), strict=True)


@pytest.mark.asyncio
async def test_missing_model_details_is_query_error():
    class EmptyControl:
        def get_foundation_model(self, modelIdentifier):
            return {}

    with pytest.raises(CapabilityQueryError):
        await query_capabilities(HAIKU, EmptyControl())
