from typing import Annotated, Tuple
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator


def validate_url(url: str) -> str:
    """Accept only absolute http(s) URLs with a host."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"only 'http' or 'https' schemes are allowed, got '{parsed.scheme}'")
    if not parsed.hostname:
        raise ValueError("missing host")
    return url


HttpUrlStr = Annotated[str, AfterValidator(validate_url)]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra='ignore')


class GeneralConfig(_Frozen):
    endpoint: HttpUrlStr
    interval_minutes: int = Field(ge=2)
    model: str
    user_agent: str
    log_latency: bool = False

    filter_max_tokens: int = Field(gt=0)
    filter_temperature: float = Field(ge=0)
    summary_max_tokens: int = Field(gt=0)
    summary_temperature: float = Field(ge=0)
    filter_system_prompt: str
    summary_system_prompt: str
    summary_user_prompt_template: str

    @property
    def interval_seconds(self) -> int:
        return self.interval_minutes * 60


class FilterConfig(_Frozen):
    relevance_indicators: Tuple[str, ...]
    irrelevance_indicators: Tuple[str, ...]


class SourceConfig(_Frozen):
    """A named feed or sitemap entry point."""
    name: str
    url: HttpUrlStr


class ProxyConfig(_Frozen):
    enabled: bool = False
    address: str = ""

    @model_validator(mode="after")
    def check_address(self):
        # Only an active proxy needs a usable address
        if self.enabled:
            validate_url(self.address)
        return self


class ConfigSnapshot(_Frozen):
    """Everything one cycle needs; replaced wholesale on the next reload."""
    general: GeneralConfig
    filter: FilterConfig
    feeds: Tuple[SourceConfig, ...] = ()
    sitemaps: Tuple[SourceConfig, ...] = ()
    proxy: ProxyConfig = ProxyConfig()
