"""Short money-saving advice from a hosted text-generation model.

The client summarises the most recent entries into a prompt and asks the
Gemini ``generateContent`` endpoint for a reply. It never raises: a missing
key, a rejected key, a network failure and an empty answer each map to a
fixed message the caller can show as-is.
"""

from __future__ import annotations

import json
import logging
import urllib.parse
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from . import config
from .errors import GatewayError
from .models import Category, Transaction, TransactionType
from .sync import Transport, urllib_transport

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "⚠️ API ключ не настроен. Пожалуйста, введите его в настройках."
INVALID_KEY_MESSAGE = "❌ Неверный API ключ. Проверьте его в настройках."
UNAVAILABLE_MESSAGE = "AI временно недоступен. Проверьте интернет или ключ."
EMPTY_ANSWER_MESSAGE = "ИИ задумался..."

PROMPT_TEMPLATE = """Ты - мудрый финансовый коуч Velvet Wallet. Проанализируй данные Марии и Виктории.

РАСХОДЫ (пользователь-категория: сумма):
{expenses}

НАКОПЛЕНИЯ (Wise): {savings}

ЗАДАЧА:
1. Похвали за дисциплину.
2. Найди 2 области для экономии.
3. Дай 3 кратких совета на русском языке. Используй эмодзи."""


class AdviceGateway(Protocol):
    def get_advice(self, recent_transactions: Sequence[Transaction], api_key: str) -> str:
        ...


def recent_transactions(entries: Sequence[Transaction], limit: int = config.RECENT_TRANSACTION_LIMIT) -> List[Transaction]:
    """The last ``limit`` entries in the order they were recorded."""
    if limit <= 0:
        return []
    return list(entries[-limit:])


def summarize_expenses(entries: Iterable[Transaction]) -> Dict[str, float]:
    """Expense totals keyed ``"<user>-<category>"``, savings deposits excluded."""
    summary: Dict[str, float] = defaultdict(float)
    for entry in entries:
        if entry.type is TransactionType.EXPENSE and entry.category is not Category.SAVINGS:
            summary[f"{entry.user.value}-{entry.category.value}"] += entry.amount
    return dict(summary)


def build_prompt(entries: Sequence[Transaction]) -> str:
    savings = sum(entry.amount for entry in entries if entry.category is Category.SAVINGS)
    return PROMPT_TEMPLATE.format(
        expenses=json.dumps(summarize_expenses(entries), ensure_ascii=False, indent=2),
        savings=savings,
    )


def _extract_text(payload: Any) -> str:
    candidates = payload.get('candidates') if isinstance(payload, dict) else None
    if not candidates or not isinstance(candidates, list):
        return ''
    content = candidates[0].get('content') if isinstance(candidates[0], dict) else None
    parts = content.get('parts') if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ''
    return ''.join(str(part.get('text', '')) for part in parts if isinstance(part, dict)).strip()


def _is_invalid_key(status: int, body: bytes) -> bool:
    if status in (401, 403):
        return True
    return status == 400 and b'API key not valid' in body


class AdvisoryClient:
    """Gemini REST client implementing ``AdviceGateway``."""

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[Transport] = None,
    ) -> None:
        self.model = model or config.ADVICE_MODEL
        self.base_url = (base_url or config.ADVICE_BASE_URL).rstrip('/')
        self.transport = transport or urllib_transport

    def endpoint(self, api_key: str) -> str:
        query = urllib.parse.urlencode({'key': api_key})
        return f"{self.base_url}/models/{self.model}:generateContent?{query}"

    def get_advice(self, recent_transactions: Sequence[Transaction], api_key: str) -> str:
        if not api_key or not api_key.strip():
            return NOT_CONFIGURED_MESSAGE
        body = json.dumps(
            {'contents': [{'parts': [{'text': build_prompt(recent_transactions)}]}]},
            ensure_ascii=False,
        ).encode('utf-8')
        try:
            status, raw = self.transport('POST', self.endpoint(api_key.strip()), body)
        except GatewayError as exc:
            logger.warning("Advice request failed: %s", exc)
            return UNAVAILABLE_MESSAGE

        if _is_invalid_key(status, raw):
            logger.warning("Advice request rejected the API key (status %s)", status)
            return INVALID_KEY_MESSAGE
        if not 200 <= status < 300:
            logger.warning("Advice request returned status %s", status)
            return UNAVAILABLE_MESSAGE
        try:
            text = _extract_text(json.loads(raw.decode('utf-8')))
        except ValueError as exc:
            logger.warning("Advice response was not valid JSON: %s", exc)
            return UNAVAILABLE_MESSAGE
        return text or EMPTY_ANSWER_MESSAGE
