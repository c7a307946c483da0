from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SourceKind(str, Enum):
    FEED = "feed"
    SITEMAP = "sitemap"


class CandidateItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    link: str
    title: str
    description: str = ""  # already HTML-stripped
    source_kind: SourceKind
    source_name: str


class ItemOutcome(str, Enum):
    CACHED_IRRELEVANT = "cached_irrelevant"
    ALREADY_PROCESSED = "already_processed"
    EXPIRED = "expired"
    IRRELEVANT = "irrelevant"
    FILTER_FAILED = "filter_failed"
    PROCESSED = "processed"


# Chat-completions wire format (OpenAI compatible servers)

class ChatMessage(BaseModel):
    role: str
    content: Optional[str] = ""


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage]
    max_tokens: int
    temperature: float
    stream: bool = False


class ChatChoice(BaseModel):
    message: ChatMessage


class ChatCompletionResponse(BaseModel):
    model_config = ConfigDict(extra='ignore')

    choices: list[ChatChoice] = []

    def first_content(self) -> str | None:
        if not self.choices:
            return None
        return self.choices[0].message.content
