from types import SimpleNamespace

import pytest
from openai import OpenAIError

from followup_kit.followups.errors import CompletionError
from followup_kit.followups.llm import CompletionParameters, OpenAICompletionClient


class StubCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.requests = []

    def create(self, **request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions: StubCompletions) -> OpenAICompletionClient:
    stub = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAICompletionClient(None, client=stub)


def test_complete_forwards_parameters_and_strips_text():
    completions = StubCompletions(content="  Hallo!  ")
    messages = [{"role": "system", "content": "prompt"}]

    text = _client(completions).complete(
        messages, CompletionParameters(model="gpt-4o-mini", temperature=0.7, max_tokens=200)
    )

    assert text == "Hallo!"
    request = completions.requests[0]
    assert request["model"] == "gpt-4o-mini"
    assert request["messages"] == messages
    assert request["temperature"] == 0.7
    assert request["max_tokens"] == 200
    assert request["presence_penalty"] == 0.1


def test_max_tokens_is_optional():
    completions = StubCompletions(content="{}")

    _client(completions).complete([], CompletionParameters(model="m", temperature=0.3))

    assert "max_tokens" not in completions.requests[0]


@pytest.mark.parametrize(
    "completions",
    [StubCompletions(content=""), StubCompletions(content=None), StubCompletions(error=OpenAIError("boom"))],
)
def test_unusable_completions_raise(completions):
    with pytest.raises(CompletionError):
        _client(completions).complete([], CompletionParameters(model="m", temperature=0.3))


def test_missing_api_key_is_rejected():
    with pytest.raises(CompletionError):
        OpenAICompletionClient(None)
