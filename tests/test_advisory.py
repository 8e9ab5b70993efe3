from __future__ import annotations

import datetime as dt
import json

import pytest

from velvet_wallet import advisory
from velvet_wallet.errors import GatewayError
from velvet_wallet.models import Category, Transaction, TransactionType, User


def _tx(ident, amount, category=Category.FOOD, user=User.MARIA):
    entry_type = TransactionType.INCOME if category is Category.INCOME else TransactionType.EXPENSE
    return Transaction(
        id=ident, amount=amount, category=category, date=dt.date(2024, 1, 10),
        user=user, type=entry_type,
    )


def _recent():
    return [
        _tx('1', 3000, Category.INCOME),
        _tx('2', 120, Category.FOOD),
        _tx('3', 80, Category.FOOD),
        _tx('4', 500, Category.SAVINGS),
        _tx('5', 40, Category.CAT_CARE, User.VIKTORIA),
    ]


def _reply(text):
    payload = {'candidates': [{'content': {'parts': [{'text': text}]}}]}
    return 200, json.dumps(payload, ensure_ascii=False).encode('utf-8')


class FakeTransport:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def __call__(self, method, url, body):
        self.calls.append((method, url, body))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _client(response):
    transport = FakeTransport(response)
    client = advisory.AdvisoryClient(model='test-model', base_url='https://ai.example/v1', transport=transport)
    return client, transport


def test_missing_key_short_circuits():
    client, transport = _client(_reply('unused'))
    assert client.get_advice(_recent(), '') == advisory.NOT_CONFIGURED_MESSAGE
    assert client.get_advice(_recent(), '   ') == advisory.NOT_CONFIGURED_MESSAGE
    assert transport.calls == []


def test_successful_reply_is_returned():
    client, transport = _client(_reply('  Отличная работа! 🎉 '))
    assert client.get_advice(_recent(), 'secret') == 'Отличная работа! 🎉'

    method, url, body = transport.calls[0]
    assert method == 'POST'
    assert url == 'https://ai.example/v1/models/test-model:generateContent?key=secret'
    prompt = json.loads(body.decode('utf-8'))['contents'][0]['parts'][0]['text']
    assert 'Мария-Еда' in prompt


@pytest.mark.parametrize('response', [
    (401, b''),
    (403, b'{"error": "forbidden"}'),
    (400, b'{"error": {"message": "API key not valid. Please pass a valid API key."}}'),
])
def test_rejected_key(response):
    client, _ = _client(response)
    assert client.get_advice(_recent(), 'wrong') == advisory.INVALID_KEY_MESSAGE


@pytest.mark.parametrize('response', [
    (500, b'oops'),
    (400, b'{"error": "bad request"}'),
    (200, b'not json'),
    GatewayError('no network'),
])
def test_unavailable_service(response):
    client, _ = _client(response)
    assert client.get_advice(_recent(), 'key') == advisory.UNAVAILABLE_MESSAGE


@pytest.mark.parametrize('body', [b'{}', b'{"candidates": []}', b'{"candidates": [{"content": {"parts": []}}]}'])
def test_empty_answer(body):
    client, _ = _client((200, body))
    assert client.get_advice(_recent(), 'key') == advisory.EMPTY_ANSWER_MESSAGE


def test_summary_excludes_income_and_savings():
    summary = advisory.summarize_expenses(_recent())
    assert summary == {'Мария-Еда': 200, 'Виктория-Кошачье хозяйство': 40}


def test_prompt_reports_savings_separately():
    prompt = advisory.build_prompt(_recent())
    assert 'НАКОПЛЕНИЯ (Wise): 500' in prompt
    assert Category.SAVINGS.value not in prompt.split('НАКОПЛЕНИЯ')[0].split('РАСХОДЫ')[1]


def test_recent_transactions_keeps_last_entries_in_order():
    entries = [_tx(str(idx), idx + 1) for idx in range(25)]
    recent = advisory.recent_transactions(entries)
    assert len(recent) == 20
    assert [entry.id for entry in recent] == [str(idx) for idx in range(5, 25)]
    assert advisory.recent_transactions(entries[:3]) == entries[:3]
    assert advisory.recent_transactions(entries, limit=0) == []
