"""
agent.py -- HTTP client for the Cogito conversational agent.

The agent is an external request/response service. We send the user's opening
message and get back a JSON transcript. One call per conversation, no retry:
a failure is surfaced to the route as AgentError and the client sees a generic
server error.

Wire format:
  POST {AGENT_URL}/ask   {"content": "<question>"}
  200                    {"content": "<JSON document as a string>"}
"""

from __future__ import annotations

import json
import logging
from typing import Any

import requests

logger = logging.getLogger("cogito.agent")


class AgentError(Exception):
    """The agent could not be reached or returned an unusable answer."""


class CogitoAgent:
    """Thin wrapper over a pooled requests.Session pointed at the agent.

    Safe to share across threads for the simple POSTs made here; one instance
    lives on app.state for the process lifetime.
    """

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # The agent is an internal service; a redirect chain is never expected.
        self._session = requests.Session()
        self._session.max_redirects = 3

    def ask(self, content: str) -> Any:
        """Send a question and return the decoded transcript.

        Raises AgentError on transport failure, non-2xx status, a reply without
        a string "content" field, or content that is not valid JSON.
        """
        try:
            resp = self._session.post(f"{self.base_url}/ask", json={"content": content}, timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as e:
            logger.warning("Agent request failed: %s", e)
            raise AgentError("agent request failed") from e
        except ValueError as e:
            logger.warning("Agent returned a non-JSON reply: %s", e)
            raise AgentError("agent reply was not JSON") from e

        answer = payload.get("content") if isinstance(payload, dict) else None
        if not isinstance(answer, str):
            logger.warning("Agent reply is missing the content field")
            raise AgentError("agent reply missing content")
        try:
            return json.loads(answer)
        except ValueError as e:
            logger.warning("Agent content is not a JSON document: %s", e)
            raise AgentError("agent content was not JSON") from e

    def close(self) -> None:
        self._session.close()
