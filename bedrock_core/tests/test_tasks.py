import json
import xml.etree.ElementTree as ET

import pytest

from bedrock_core.domain.conversation import ConversationSession
from bedrock_core.domain.exceptions import RetriesExhaustedError, UnsupportedModalityError
from bedrock_core.domain.models import Message
from bedrock_core.infrastructure.retry import RetryPolicy
from bedrock_core.providers.bedrock_client import BedrockClient
from bedrock_core.tasks.captioner import ImageItem, caption_images, list_images, write_captions
from bedrock_core.tasks.export import export_html
from bedrock_core.tasks.source_review import (
    build_review_question,
    collect_sources,
    guess_extensions,
    list_source_files,
    parse_extension_list,
)

HAIKU = "anthropic.claude-3-haiku-20240307-v1:0"


# ---- captioner ----


def test_list_images_filters_by_extension(tmp_path):
    for name in ("b.PNG", "a.jpg", "notes.txt", "c.gif"):
        (tmp_path / name).write_bytes(b"data")
    (tmp_path / "sub.png").mkdir()
    names = [p.name for p in list_images(tmp_path, ["png", "jpg"])]
    assert names == ["a.jpg", "b.PNG"]


def test_image_item_maps_jpg_to_jpeg(tmp_path):
    path = tmp_path / "photo.JPG"
    path.write_bytes(b"\xff\xd8")
    item = ImageItem.from_path(path)
    assert item.format == "jpeg"
    assert item.payload.media_type == "image/jpeg"


@pytest.mark.asyncio
async def test_caption_images_sends_one_request_per_image(tmp_path, fake_runtime, fake_control, reply_bytes):
    for name in ("a.png", "b.png"):
        (tmp_path / name).write_bytes(b"png")
    images = [ImageItem.from_path(p) for p in list_images(tmp_path, ["png"])]
    runtime = fake_runtime(replies=[reply_bytes(" A cat. "), reply_bytes("A dog.")])
    client = BedrockClient(runtime, fake_control(modalities=["TEXT", "IMAGE"]), sink=lambda _t: None)

    result = await caption_images(client, HAIKU, "Caption this", images)

    assert [i.caption for i in result] == ["A cat.", "A dog."]
    assert len(runtime.calls) == 2
    assert runtime.payload(0)["messages"][0]["content"][0]["type"] == "image"


@pytest.mark.asyncio
async def test_caption_requires_image_capability(tmp_path, fake_runtime, fake_control):
    (tmp_path / "a.png").write_bytes(b"png")
    images = [ImageItem.from_path(tmp_path / "a.png")]
    runtime = fake_runtime()
    client = BedrockClient(runtime, fake_control(modalities=["TEXT"]), sink=lambda _t: None)

    with pytest.raises(UnsupportedModalityError):
        await caption_images(client, HAIKU, "Caption this", images)
    assert runtime.calls == []


def test_write_captions_json_and_xml(tmp_path):
    item = ImageItem(path=tmp_path / "a.png", data=b"", format="png", caption="A <red> cat")

    json_path = write_captions([item], "json", tmp_path / "captions.json")
    assert json.loads(json_path.read_text(encoding="utf-8")) == [{"path": str(item.path), "caption": "A <red> cat"}]

    xml_path = write_captions([item], "xml", tmp_path / "captions.xml")
    root = ET.parse(xml_path).getroot()
    assert root.tag == "captions"
    assert root.find("image/caption").text == "A <red> cat"

    with pytest.raises(ValueError):
        write_captions([item], "csv", tmp_path / "captions.csv")


# ---- source review ----


def _project(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("print('hi')\n", encoding="utf-8")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("ignored", encoding="utf-8")
    (tmp_path / ".hidden.py").write_text("ignored", encoding="utf-8")
    (tmp_path / "README.md").write_text("not source", encoding="utf-8")
    return tmp_path


def test_collect_sources_skips_ignored(tmp_path):
    code = collect_sources(_project(tmp_path), ["py", "js"], ["node_modules"])
    assert "FILENAME: src/main.py" in code
    assert "print('hi')" in code
    assert "dep.js" not in code
    assert ".hidden.py" not in code
    assert "README" not in code


def test_review_question_uses_default_prompt(tmp_path):
    question = build_review_question(_project(tmp_path), ["py"], ["node_modules"])
    assert question.startswith("You are an experienced software engineer")
    assert "<source_code>" in question and "</source_code>" in question
    assert "{source_code}" not in question


def test_review_question_prefers_rules_file(tmp_path):
    root = _project(tmp_path)
    (root / ".bedrockrules").write_text("Only look for SQL injection.", encoding="utf-8")
    question = build_review_question(root, ["py"], ["node_modules"])
    assert question.startswith("Only look for SQL injection.")
    assert "FILENAME: src/main.py" in question


def test_gitignore_rules_are_honoured(tmp_path):
    root = _project(tmp_path)
    (root / ".gitignore").write_text("build/\n*.gen.py\n# comment\n", encoding="utf-8")
    (root / "build").mkdir()
    (root / "build" / "out.py").write_text("ignored", encoding="utf-8")
    (root / "src" / "schema.gen.py").write_text("ignored", encoding="utf-8")

    names = [p.relative_to(root).as_posix() for p in list_source_files(root, ["py"], ["node_modules"])]

    assert names == ["src/main.py"]


def test_list_without_extension_filter(tmp_path):
    root = _project(tmp_path)
    names = [p.name for p in list_source_files(root, None, ["node_modules"])]
    assert names == ["README.md", "main.py"]


@pytest.mark.parametrize(
    "reply, expected",
    [
        ('["py", "toml"]', ["py", "toml"]),
        ('Sure: [".RS", "toml", "rs"]', ["rs", "toml"]),
    ],
)
def test_parse_extension_list(reply, expected):
    assert parse_extension_list(reply) == expected


@pytest.mark.parametrize("reply", ["python files", "[]", '{"ext": "py"}', "[1, 2]"])
def test_parse_extension_list_rejects_bad_replies(reply):
    with pytest.raises(ValueError):
        parse_extension_list(reply)


@pytest.mark.asyncio
async def test_guess_extensions_retries_until_array(tmp_path, fake_runtime, fake_control, reply_bytes):
    root = _project(tmp_path)
    runtime = fake_runtime(replies=[reply_bytes("It is a Python project."), reply_bytes('["py"]')])
    client = BedrockClient(runtime, fake_control(), sink=lambda _t: None)
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)

    extensions = await guess_extensions(client, RetryPolicy(max_attempts=3, sleep=record_sleep), HAIKU, root, ["node_modules"])

    assert extensions == ["py"]
    assert len(runtime.calls) == 2
    assert delays == [1]
    prompt = runtime.payload(0)["messages"][-1]["content"][0]["text"]
    assert "src/main.py" in prompt
    assert "README.md" in prompt
    assert "dep.js" not in prompt


@pytest.mark.asyncio
async def test_guess_extensions_exhausted(tmp_path, fake_runtime, fake_control, reply_bytes):
    runtime = fake_runtime(replies=[reply_bytes("no idea"), reply_bytes("still no idea")])
    client = BedrockClient(runtime, fake_control(), sink=lambda _t: None)

    async def no_sleep(_seconds):
        return None

    with pytest.raises(RetriesExhaustedError):
        await guess_extensions(client, RetryPolicy(max_attempts=2, sleep=no_sleep), HAIKU, _project(tmp_path), [])


# ---- export ----


def test_export_html_escapes_content(tmp_path):
    session = ConversationSession(
        title="Tags & things",
        summary="About <b>",
        messages=[Message.user("<script>alert(1)</script>"), Message.assistant("Don't")],
    )
    path = export_html(session, tmp_path / "out" / "chat.html")
    page = path.read_text(encoding="utf-8")
    assert "<title>Tags &amp; things</title>" in page
    assert "&lt;script&gt;" in page
    assert "<script>" not in page
    assert 'class="message assistant"' in page
