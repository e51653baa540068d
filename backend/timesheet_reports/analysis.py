"""Client for the OpenAI-compatible chat completion endpoint used by the progress page."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a business analyst specializing in team productivity and project management. "
    "Analyze the provided timesheet data and provide insights based on the user's prompt. "
    "Focus on actionable insights, trends, and recommendations."
)


class AnalysisError(RuntimeError):
    """Upstream analysis request failed."""

    def __init__(self, message: str, *, response: Optional[requests.Response] = None) -> None:
        super().__init__(message)
        self.response = response


def build_messages(prompt: str, data: Dict[str, Any]) -> list[dict[str, str]]:
    user_prompt = f"Based on this timesheet data:\n{json.dumps(data, indent=2)}\n\nPlease analyze: {prompt}"
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


class AnalysisClient:
    def __init__(self, api_url: str, api_key: str, model: str = "gpt-4", timeout: int = 60) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(self.api_url, json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise AnalysisError(str(exc)) from exc
        if response.status_code >= 400:
            raise AnalysisError(f"Analysis API error {response.status_code}: {response.text}", response=response)
        try:
            return response.json()
        except ValueError as exc:
            raise AnalysisError("Analysis API returned invalid JSON", response=response) from exc

    def analyze(self, prompt: str, data: Dict[str, Any]) -> str:
        body = self._request(
            {
                "model": self.model,
                "messages": build_messages(prompt, data),
                "max_tokens": 1000,
                "temperature": 0.7,
            }
        )
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise AnalysisError("Analysis API response had no choices") from exc
        logger.info("Analysis completed with model %s", self.model)
        return content or "No analysis generated"
