import os

os.environ.setdefault('SECRET_KEY', 'test-secret')

import pytest

from services.inference import InferenceError


class ScriptedInference:
    """Stands in for WorkersAIClient. Each entry is returned (str) or raised (Exception)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def run(self, model, messages):
        self.calls.append({'model': model, 'messages': messages})
        if not self.responses:
            raise InferenceError('no scripted response left')
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


class PromptRoutedInference:
    """Answers by looking up the system prompt; a missing or Exception entry fails the call."""

    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    def run(self, model, messages):
        system = messages[0]['content']
        self.calls.append({'model': model, 'messages': messages})
        reply = self.replies.get(system)
        if reply is None:
            raise InferenceError('model unavailable')
        if isinstance(reply, Exception):
            raise reply
        return reply(messages) if callable(reply) else reply


@pytest.fixture
def scripted():
    return ScriptedInference


@pytest.fixture
def routed():
    return PromptRoutedInference
