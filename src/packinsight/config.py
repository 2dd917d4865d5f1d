"""Runtime settings and credentials."""

import os
from dataclasses import dataclass

DEFAULT_LLM_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_LLM_MODEL = "openai/gpt-3.5-turbo"


@dataclass(frozen=True)
class Settings:
    """Credentials and tunables for a scan.

    Built once per process (or per scan) and passed to the pipeline. Missing
    tokens disable the features that need them; they never fail a scan.

    Attributes:
        github_token: Token for the GitHub REST and GraphQL APIs. Without it
            the advisory GraphQL source is skipped and repository stats use
            the anonymous rate limit.
        llm_api_key: Key for the chat-completions endpoint used to write
            package descriptions.
        llm_url: Chat-completions endpoint.
        llm_model: Model name sent to the endpoint.
        retry_base_delay: First backoff delay in seconds; doubles per attempt.
    """

    github_token: str | None = None
    llm_api_key: str | None = None
    llm_url: str = DEFAULT_LLM_URL
    llm_model: str = DEFAULT_LLM_MODEL
    retry_base_delay: float = 1.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from environment variables."""
        base_delay = os.environ.get("PACKINSIGHT_RETRY_BASE_DELAY")
        return cls(
            github_token=os.environ.get("GITHUB_TOKEN") or None,
            llm_api_key=os.environ.get("OPENAI_API_KEY") or None,
            llm_url=os.environ.get("PACKINSIGHT_LLM_URL", DEFAULT_LLM_URL),
            llm_model=os.environ.get("PACKINSIGHT_LLM_MODEL", DEFAULT_LLM_MODEL),
            retry_base_delay=float(base_delay) if base_delay else 1.0,
        )
