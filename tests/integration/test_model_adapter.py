from types import SimpleNamespace

from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from lumina_rag.agent.model import LangChainModelClient, ModelRequest, _chunk_text
from lumina_rag.types import Role


class RecordingChatModel:
    """Delegates to a fake chat model and keeps the rendered prompt messages."""

    def __init__(self, reply: str) -> None:
        self.llm = GenericFakeChatModel(messages=iter([AIMessage(content=reply)]))
        self.prompts: list[list] = []

    def stream(self, prompt_value):
        self.prompts.append(prompt_value.to_messages())
        return self.llm.stream(prompt_value)


def test_streams_cumulative_snapshots_with_mapped_history() -> None:
    llm = RecordingChatModel("Hello world")
    client = LangChainModelClient(llm)
    request = ModelRequest(
        system_instruction="Answer from documents.",
        new_prompt="Say hello",
        prior_messages=[(Role.USER, "hi"), (Role.MODEL, "Hello! Ask me anything.")],
    )

    snapshots = list(client.stream(request))

    assert snapshots[-1] == "Hello world"
    assert len(snapshots) > 1
    for earlier, later in zip(snapshots, snapshots[1:]):
        assert later.startswith(earlier)

    messages = llm.prompts[0]
    assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage, HumanMessage]
    assert [m.content for m in messages] == [
        "Answer from documents.",
        "hi",
        "Hello! Ask me anything.",
        "Say hello",
    ]


def test_chunk_text_flattens_list_content() -> None:
    chunk = SimpleNamespace(content=[{"type": "text", "text": "Hi"}, " there"])

    assert _chunk_text(chunk) == "Hi there"
    assert _chunk_text(SimpleNamespace(content=None)) == ""
    assert _chunk_text("plain") == "plain"
