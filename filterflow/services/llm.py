import time
from typing import Any, Dict

import httpx

from filterflow.exceptions import OracleFormatError, OracleProtocolError
from filterflow.models.config import FilterConfig, GeneralConfig
from filterflow.models.items import CandidateItem, ChatCompletionRequest, ChatCompletionResponse, ChatMessage
from filterflow.services.fetcher import FILTER_TIMEOUT, SUMMARY_TIMEOUT, post_json
from filterflow.services.logger import logger

EMPTY_SUMMARY = "[empty summary]"

FILTER_PROMPT = (
    "Assess the relevance of the news item. Title: '{title}' | Description: '{description}'.\n\n"
    "Conditions:\n"
    "1. The item is **primarily** about one or more of these INCLUSION topics: ({include})\n"
    "2. The item must **NOT** be related to any of the following terms: ({exclude}).\n\n"
    "If BOTH conditions are satisfied, answer '1'. Otherwise answer '0'. Answer ONLY '1' or '0'."
)


def build_filter_prompt(item: CandidateItem, filters: FilterConfig) -> str:
    return FILTER_PROMPT.format(
        title=item.title,
        description=item.description,
        include=", ".join(filters.relevance_indicators),
        exclude=", ".join(filters.irrelevance_indicators),
    )


def build_summary_prompt(template: str, title: str, description: str) -> str:
    """Fills the two '{}' slots with title and description, in that order."""
    parts = template.split("{}")
    if len(parts) == 3:
        return f"{parts[0]}{title}{parts[1]}{description}{parts[2]}"
    # Misconfigured template (already warned about at load time)
    return f"{template} {title} {description}"


def parse_verdict(text: str) -> bool:
    answer = text.strip()
    if answer == "1":
        return True
    if answer == "0":
        return False
    raise OracleFormatError(f"Classifier did not answer '1' or '0': {answer!r}")


class RelevanceOracle:
    """
    Client for an OpenAI-compatible chat-completions endpoint, used in two
    stages: a cheap binary relevance filter, then a summary for items that pass.
    Both calls are stateless; errors are raised and the caller decides how to degrade.
    """

    def __init__(self, client: httpx.AsyncClient, general: GeneralConfig, filters: FilterConfig):
        self.client = client
        self.general = general
        self.filters = filters

    def _payload(self, system: str, user: str, *, max_tokens: int, temperature: float) -> Dict[str, Any]:
        request = ChatCompletionRequest(
            model=self.general.model,
            messages=[
                ChatMessage(role="system", content=system),
                ChatMessage(role="user", content=user),
            ],
            max_tokens=max_tokens,
            temperature=temperature,
            stream=False,
        )
        return request.model_dump()

    async def _complete(self, payload: Dict[str, Any], *, timeout: float) -> ChatCompletionResponse:
        start = time.perf_counter()
        resp = await post_json(self.client, self.general.endpoint, payload, timeout=timeout)
        elapsed = time.perf_counter() - start
        if self.general.log_latency:
            logger.info(f"[LATENCY] LLM call took {elapsed:.2f}s (response size: {len(resp.content)} bytes)")

        try:
            data = resp.json()
            if isinstance(data, dict) and data.get("choices") is None:
                data = {**data, "choices": []}
            return ChatCompletionResponse.model_validate(data)
        except ValueError as e:
            raise OracleProtocolError(f"Malformed response from {self.general.endpoint}: {e}") from e

    async def is_relevant(self, item: CandidateItem) -> bool:
        payload = self._payload(
            self.general.filter_system_prompt,
            build_filter_prompt(item, self.filters),
            max_tokens=self.general.filter_max_tokens,
            temperature=self.general.filter_temperature,
        )
        response = await self._complete(payload, timeout=FILTER_TIMEOUT)
        content = response.first_content()
        if content is None:
            return False

        try:
            return parse_verdict(content)
        except OracleFormatError as e:
            # Fail closed: anything ambiguous is not relevant
            logger.warning(f"[FORMAT ALERT] {e}. Item ignored: {item.title}")
            return False

    async def summarize(self, item: CandidateItem) -> str:
        payload = self._payload(
            self.general.summary_system_prompt,
            build_summary_prompt(self.general.summary_user_prompt_template, item.title, item.description),
            max_tokens=self.general.summary_max_tokens,
            temperature=self.general.summary_temperature,
        )
        response = await self._complete(payload, timeout=SUMMARY_TIMEOUT)
        content = response.first_content()
        if content is None:
            return EMPTY_SUMMARY
        return content.strip()
