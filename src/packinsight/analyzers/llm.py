"""LLM-written package descriptions."""

import logging
from typing import Any

from packinsight.http import Ok, ResilientClient
from packinsight.models.schemas import Ecosystem, PackageMetadata, RepositoryStats

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description available"

SYSTEM_PROMPT = (
    "You are a technical writer who creates concise, accurate package "
    "descriptions for developers."
)


class DescriptionGenerator:
    """Writes a short description of a package with a chat-completions model.

    Works against any OpenAI-compatible chat-completions endpoint
    (OpenRouter by default). Without an API key, or when the call fails,
    the registry description is returned instead.
    """

    def __init__(
        self,
        api_key: str | None,
        url: str,
        model: str,
        http: ResilientClient | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            api_key: Bearer key for the endpoint. None disables generation.
            url: Chat-completions endpoint.
            model: Model name.
            http: Resilient client used for the request.
        """
        self.api_key = api_key
        self.url = url
        self.model = model
        self.http = http or ResilientClient()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def fallback(self, metadata: PackageMetadata | None) -> str:
        """Description used when generation is unavailable."""
        return (metadata.description if metadata else None) or NO_DESCRIPTION

    def build_prompt(
        self,
        name: str,
        ecosystem: Ecosystem,
        metadata: PackageMetadata | None,
        repo_stats: RepositoryStats | None = None,
    ) -> str:
        description = (metadata.description if metadata else None) or "Not available"
        downloads = (metadata.downloads if metadata else None) or 0
        stars = repo_stats.stars if repo_stats else 0
        language = repo_stats.language if repo_stats else ecosystem.value

        return f"""Generate a concise 2-3 sentence description explaining what the "{name}" {ecosystem.value} package does, its primary use cases, and why developers might choose it. Based on:
- Description: {description}
- Stars: {stars}
- Downloads: {downloads}
- Language: {language}

Keep it informative, technical but accessible."""

    async def describe(
        self,
        name: str,
        ecosystem: Ecosystem,
        metadata: PackageMetadata | None,
        repo_stats: RepositoryStats | None = None,
    ) -> str:
        """Describe a package.

        Returns:
            The generated description, or the fallback description.
        """
        if not self.enabled:
            return self.fallback(metadata)

        content = await self.chat(
            SYSTEM_PROMPT,
            self.build_prompt(name, ecosystem, metadata, repo_stats),
            max_tokens=150,
        )
        return content or self.fallback(metadata)

    async def chat(
        self,
        system: str,
        prompt: str,
        max_tokens: int,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> str | None:
        """Send one system + user exchange to the endpoint.

        Args:
            system: System message.
            prompt: User message.
            max_tokens: Completion length bound.
            temperature: Sampling temperature.
            json_mode: Ask the endpoint for a JSON object response.

        Returns:
            The first choice's text, or None when disabled or on any failure.
        """
        if not self.enabled:
            return None

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        result = await self.http.post_json(
            self.url,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            max_attempts=2,
            timeout=30.0,
        )
        if not isinstance(result, Ok):
            logger.debug(f"Chat completion unavailable: {result.reason}")
            return None

        return self._extract_content(result.value)

    def _extract_content(self, data: Any) -> str | None:
        """Pull the first choice's message text out of a completion."""
        if not isinstance(data, dict):
            return None
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        content = (choices[0].get("message") or {}).get("content")
        return content.strip() if isinstance(content, str) else None
