import json

import pytest

from services.answer import (
    STRUCTURED_FORMAT,
    STRUCTURED_ANSWER_PROMPT,
    TEXT_ANSWER_PROMPT,
    TEXT_ERROR_ANSWER,
    compose_answer,
)
from services.extraction import EMPTY_RESPONSE, MODEL_UNAVAILABLE, NO_JSON
from services.inference import InferenceError

ROWS = [
    {'id': 'fb-1', 'content': 'login completely broken fix it!!!', 'source': 'api', 'sentiment': -0.9,
     'category': 'Bug', 'explanation': 'Users cannot log in.', 'gravity_score': 18.0,
     'created_at': '2026-03-01T11:00:00+00:00', 'status': 'open', 'closed_at': None},
    {'id': 'fb-2', 'content': 'pricing page is confusing as hell', 'source': 'twitter', 'sentiment': -0.6,
     'category': 'UX', 'explanation': 'Pricing is unclear.', 'gravity_score': 3.0,
     'created_at': '2026-03-01T10:00:00+00:00', 'status': 'open', 'closed_at': None},
]

DOWN = (InferenceError('a'), InferenceError('b'), InferenceError('c'))


def compose(client, rows=ROWS, answer_format='text', intent='top_issues'):
    return compose_answer('what are the top issues?', intent, rows, client, answer_format=answer_format, backoff_s=0)


def test_text_answer_is_grounded_in_tool_data(scripted):
    client = scripted('Login is the top issue (gravity 18).')
    outcome = compose(client)

    assert outcome.value == {'answer': 'Login is the top issue (gravity 18).'}
    system, user = client.calls[0]['messages']
    assert system['content'] == TEXT_ANSWER_PROMPT
    assert user['content'].startswith('User Query: what are the top issues?\nTOOL_DATA: ')
    assert json.loads(user['content'].split('TOOL_DATA: ', 1)[1]) == ROWS


def test_empty_rows_say_so_without_calling_model(scripted):
    client = scripted()
    outcome = compose(client, rows=[], intent='bugs_recent')

    assert not outcome.is_fallback
    assert 'no matching feedback' in outcome.value['answer']
    assert 'widening the window' in outcome.value['answer']
    assert client.calls == []


def test_empty_rows_structured(scripted):
    outcome = compose(scripted(), rows=[], answer_format=STRUCTURED_FORMAT, intent='search')
    assert outcome.value['headline'] == 'No matching feedback found.'
    assert outcome.value['issues'] == []
    assert 'keyword' in outcome.value['follow_up']


def test_text_model_failure_returns_apology(scripted):
    outcome = compose(scripted(*DOWN))
    assert outcome.fallback_reason == MODEL_UNAVAILABLE
    assert outcome.value == {'answer': TEXT_ERROR_ANSWER}


def test_blank_text_answer_returns_apology(scripted):
    outcome = compose(scripted('   '))
    assert outcome.fallback_reason == EMPTY_RESPONSE
    assert outcome.value['answer'] == TEXT_ERROR_ANSWER


def test_structured_answer_drops_invented_issue_ids(scripted):
    raw = json.dumps({
        'headline': 'Login failures dominate.',
        'stats': [{'label': 'Issues', 'value': 2}, 'junk'],
        'issues': [
            {'id': 'fb-1', 'gravity_score': 99, 'category': 'Bug', 'summary': 'Login broken', 'next_step': 'Page on-call'},
            {'id': 'fb-999', 'gravity_score': 40, 'category': 'Bug', 'summary': 'Invented', 'next_step': 'n/a'},
        ],
        'follow_up': 'Should we hotfix login today?',
    })
    client = scripted('```json\n' + raw + '\n```')
    outcome = compose(client, answer_format=STRUCTURED_FORMAT)

    assert client.calls[0]['messages'][0]['content'] == STRUCTURED_ANSWER_PROMPT
    answer = outcome.value
    assert answer['headline'] == 'Login failures dominate.'
    assert answer['stats'] == [{'label': 'Issues', 'value': '2'}]
    assert [card['id'] for card in answer['issues']] == ['fb-1']
    assert answer['issues'][0]['gravity_score'] == 18.0
    assert answer['follow_up'] == 'Should we hotfix login today?'


def test_structured_unparsable_returns_error_payload(scripted):
    outcome = compose(scripted('Login is bad.'), answer_format=STRUCTURED_FORMAT)
    assert outcome.fallback_reason == NO_JSON
    assert outcome.value['headline'] == 'Error analyzing data'
    assert outcome.value['issues'] == []


def test_structured_model_failure_returns_error_payload(scripted):
    outcome = compose(scripted(*DOWN), answer_format=STRUCTURED_FORMAT)
    assert outcome.fallback_reason == MODEL_UNAVAILABLE
    assert outcome.value['headline'] == 'Error analyzing data'


@pytest.mark.parametrize('reply', [
    {'headline': 'Login failures dominate.', 'issues': 5, 'stats': []},
    {'headline': 'Login failures dominate.', 'issues': [], 'stats': 3},
    {'headline': 'Login failures dominate.', 'issues': [{'id': ['fb-1'], 'summary': 'x'}], 'stats': {'a': 1}},
])
def test_structured_answer_with_malformed_lists_keeps_headline(scripted, reply):
    outcome = compose(scripted(json.dumps(reply)), answer_format=STRUCTURED_FORMAT)
    assert outcome.value['headline'] == 'Login failures dominate.'
    assert outcome.value['issues'] == []
    assert outcome.value['stats'] == []
