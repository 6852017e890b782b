import json

import pytest

from services.extraction import EMPTY_RESPONSE, INVALID_SHAPE, MODEL_UNAVAILABLE, NO_JSON
from services.inference import InferenceError
from services.intent import HELP_INTENT, INTENT_PROMPT, IntentQuery, QueryParams, route_intent


def route(client, query='any bugs in the last 6 hours?'):
    return route_intent(query, client, backoff_s=0)


def reply(intent, **params):
    full = {'hours': 0, 'days': 0, 'term': '', 'id': ''}
    full.update(params)
    return json.dumps({'intent': intent, 'params': full})


def test_routes_recent_bugs(scripted):
    client = scripted(reply('bugs_recent', hours=6))
    outcome = route(client)

    assert not outcome.is_fallback
    assert outcome.value == IntentQuery('bugs_recent', QueryParams(hours=6))
    assert client.calls[0]['messages'][0]['content'] == INTENT_PROMPT


def test_fenced_search_term_is_stripped(scripted):
    outcome = route(scripted('```json\n' + reply('search', term='  export ') + '\n```'), 'who mentions export?')
    assert outcome.value.params.term == 'export'


@pytest.mark.parametrize('raw', [
    reply('delete_everything'),
    json.dumps({'intent': 'top_issues'}),
    json.dumps({'params': {'hours': 1, 'days': 0, 'term': '', 'id': ''}}),
    json.dumps({'intent': 'search', 'params': 'export'}),
])
def test_unrecognized_shapes_fall_back_to_help(scripted, raw):
    outcome = route(scripted(raw))
    assert outcome.fallback_reason == INVALID_SHAPE
    assert outcome.value == HELP_INTENT
    assert outcome.value.params == QueryParams(hours=0, days=0, term='', id='')


def test_prose_answer_falls_back_to_help(scripted):
    outcome = route(scripted('You probably want the top issues.'))
    assert outcome.fallback_reason == NO_JSON
    assert outcome.value.intent == 'help'


def test_blank_query_skips_the_model(scripted):
    client = scripted()
    for query in ('', '   ', None, 42):
        assert route(client, query).fallback_reason == EMPTY_RESPONSE
    assert client.calls == []


def test_model_failure_falls_back_to_help(scripted):
    outcome = route(scripted(InferenceError('a'), InferenceError('b'), InferenceError('c')))
    assert outcome.fallback_reason == MODEL_UNAVAILABLE
    assert outcome.value == HELP_INTENT


def test_missing_params_keys_default_to_zero(scripted):
    outcome = route(scripted('{"intent": "summary", "params": {"days": "14"}}'), 'summarize two weeks')
    assert outcome.value == IntentQuery('summary', QueryParams(hours=0, days=14, term='', id=''))


def test_invalid_numbers_are_zeroed(scripted):
    outcome = route(scripted(reply('bugs_recent', hours=-5, days='soon')))
    assert outcome.value.params.hours == 0
    assert outcome.value.params.days == 0
