"""Text-generation calls against Workers AI with bounded linear-backoff retry."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_MODEL = '@cf/meta/llama-3-8b-instruct'

Message = Dict[str, str]


class InferenceError(Exception):
    """Raised when the model endpoint cannot produce a response."""


def build_messages(system_prompt: str, user_content: str) -> List[Message]:
    return [
        {'role': 'system', 'content': system_prompt},
        {'role': 'user', 'content': user_content},
    ]


class WorkersAIClient:
    """Minimal client for the Workers AI REST endpoint.

    Only the chat-style `messages` input is used; the generated text is read
    from `result.response`.
    """

    def __init__(
        self,
        account_id: Optional[str],
        api_token: Optional[str],
        base_url: str = 'https://api.cloudflare.com/client/v4',
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.account_id = account_id
        self._token = api_token
        self.base = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        h = {'Accept': 'application/json', 'Content-Type': 'application/json'}
        if self._token:
            h['Authorization'] = f'Bearer {self._token}'
        return h

    def run(self, model: str, messages: List[Message]) -> str:
        if not self.account_id:
            raise InferenceError('CF_ACCOUNT_ID is not configured')

        url = f'{self.base}/accounts/{self.account_id}/ai/run/{model}'
        try:
            resp = self.session.post(url, json={'messages': messages}, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise InferenceError(f'Workers AI request failed: {exc}') from exc

        if resp.status_code >= 400:
            raise InferenceError(f'Workers AI returned HTTP {resp.status_code}')

        try:
            body = resp.json()
        except ValueError as exc:
            raise InferenceError('Workers AI returned a non-JSON body') from exc

        if not body.get('success', True):
            raise InferenceError(f"Workers AI reported errors: {body.get('errors')}")

        text = (body.get('result') or {}).get('response')
        if not isinstance(text, str):
            raise InferenceError('Workers AI response has no text')
        return text


def generate(
    client,
    model: str,
    messages: List[Message],
    *,
    retries: int = 2,
    backoff_s: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Return the model's raw text, retrying any failure up to `retries` times.

    The delay after failed attempt n is `backoff_s * n`. When every attempt
    fails the last error is raised as InferenceError.
    """
    attempts = max(0, retries) + 1
    last_exc: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            return client.run(model, messages)
        except Exception as exc:  # noqa: BLE001
            last_exc = exc
            logger.warning('Model call failed on attempt %s/%s: %s', attempt, attempts, exc)
            if attempt < attempts:
                sleep(backoff_s * attempt)

    if isinstance(last_exc, InferenceError):
        raise last_exc
    raise InferenceError(f'Model call failed after {attempts} attempts: {last_exc}') from last_exc
