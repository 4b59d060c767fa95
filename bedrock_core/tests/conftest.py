import json
import os
import tempfile
from pathlib import Path

import pytest

# 必须在导入 bedrock_core 之前设置：settings 与 logger 在导入时初始化
_TMP = Path(tempfile.mkdtemp(prefix="bedrock_core_tests_"))
os.environ["BEDROCK_CORE_CONFIG_FILE"] = str(_TMP / "missing-config.yaml")
os.environ["BEDROCK_CORE_LOG_DIR"] = str(_TMP / "logs")
os.environ["BEDROCK_CORE_STORAGE_ROOT"] = str(_TMP / "chats")

HAIKU = "anthropic.claude-3-haiku-20240307-v1:0"


class FakeBody:
    def __init__(self, data: bytes):
        self._data = data

    def read(self) -> bytes:
        return self._data


class FakeRuntime:
    """bedrock-runtime 假客户端：按顺序返回预设响应，并记录每次调用。"""

    def __init__(self, replies=None, events=None, error=None):
        self.replies = list(replies or [])
        self.events = list(events or [])
        self.error = error
        self.calls = []

    def invoke_model(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return {"body": FakeBody(reply)}

    def invoke_model_with_response_stream(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return {"body": iter(self.events)}

    def payload(self, idx: int = -1):
        return json.loads(self.calls[idx]["body"])


class FakeControl:
    def __init__(self, streaming=False, modalities=("TEXT",), error=None):
        self.streaming = streaming
        self.modalities = list(modalities)
        self.error = error
        self.calls = []

    def get_foundation_model(self, modelIdentifier):
        self.calls.append(modelIdentifier)
        if self.error is not None:
            raise self.error
        return {
            "modelDetails": {
                "modelId": modelIdentifier,
                "responseStreamingSupported": self.streaming,
                "inputModalities": self.modalities,
            }
        }


def claude3_reply(text: str) -> bytes:
    return json.dumps({"content": [{"type": "text", "text": text}]}).encode("utf-8")


def stream_event(payload: dict) -> dict:
    return {"chunk": {"bytes": json.dumps(payload).encode("utf-8")}}


@pytest.fixture
def fake_runtime():
    return FakeRuntime


@pytest.fixture
def fake_control():
    return FakeControl


@pytest.fixture
def reply_bytes():
    return claude3_reply


@pytest.fixture
def make_event():
    return stream_event


@pytest.fixture
def collected():
    """收集 sink 输出的列表及对应的 sink 函数。"""

    chunks = []
    return chunks, chunks.append
