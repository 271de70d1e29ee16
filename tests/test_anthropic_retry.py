import anthropic
import httpx
import pytest

from carekorea.pipeline import anthropic_retry
from carekorea.pipeline.anthropic_retry import messages_create_with_retry, response_text

from conftest import FakeAnthropic


def connection_error():
    return anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))


@pytest.fixture
def sleeps(monkeypatch):
    delays = []
    monkeypatch.setattr(anthropic_retry.time, "sleep", delays.append)
    return delays


def test_retries_transient_errors_with_backoff(sleeps):
    answers = [connection_error(), connection_error(), "done"]
    client = FakeAnthropic(lambda kwargs: answers.pop(0))

    message = messages_create_with_retry(client, label="en", model="m", max_tokens=10, messages=[])

    assert response_text(message) == "done"
    assert sleeps == [5, 10]
    assert len(client.messages.calls) == 3


def test_gives_up_after_max_retries(sleeps):
    client = FakeAnthropic(lambda kwargs: connection_error())

    with pytest.raises(anthropic.APIConnectionError):
        messages_create_with_retry(client, model="m", max_tokens=10, messages=[])

    assert len(client.messages.calls) == anthropic_retry.MAX_RETRIES
    assert sleeps == [5, 10, 20]


def test_other_errors_are_not_retried(sleeps):
    client = FakeAnthropic(lambda kwargs: ValueError("bad request"))

    with pytest.raises(ValueError):
        messages_create_with_retry(client, model="m", max_tokens=10, messages=[])
    assert sleeps == []
