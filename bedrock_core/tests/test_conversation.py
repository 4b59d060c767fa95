import pytest

from bedrock_core.domain.conversation import ConversationSession, SessionState
from bedrock_core.domain.models import Message


def test_state_transitions():
    session = ConversationSession()
    assert session.state == SessionState.EMPTY

    session.add_user("hi")
    session.add_assistant("hello")
    assert session.state == SessionState.ACTIVE

    session.mark_saved("hi_12345678.json")
    assert session.state == SessionState.PERSISTED

    session.add_user("again")
    assert session.state == SessionState.ACTIVE
    assert session.filename == "hi_12345678.json"


def test_discard_last_on_empty_session():
    session = ConversationSession()
    assert session.discard_last() is None


def test_transcript_format():
    session = ConversationSession(messages=[Message.user("What is 2+2?"), Message.assistant("4")])
    assert session.to_transcript() == "user:What is 2+2?\n\nassistant:4"


def test_replace_with_copies_messages():
    loaded = ConversationSession(title="t", summary="s", messages=[Message.user("a")], filename="t_1.json")
    current = ConversationSession(messages=[Message.user("x"), Message.assistant("y")])

    current.replace_with(loaded)
    loaded.messages[0].content.append("mutated")

    assert current.state == SessionState.ACTIVE
    assert current.title == "t" and current.filename == "t_1.json"
    assert current.messages[0].content == ["a"]


def test_message_from_dict_validates_role():
    assert Message.from_dict({"role": "Assistant", "content": "hi"}) == Message.assistant("hi")
    with pytest.raises(ValueError):
        Message.from_dict({"role": "system", "content": ["x"]})
