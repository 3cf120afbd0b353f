"""Text-completion clients for the supported AI providers.

Each provider is reached over plain HTTPS with JSON bodies.  The only
operation is ``complete(prompt) -> text``.
"""

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

MAX_TOKENS = 1024
ANTHROPIC_VERSION = "2023-06-01"


class ProviderError(Exception):
    """The provider could not produce a completion."""


class MissingCredentialError(ProviderError):
    """A non-local provider was selected without an API key."""


class UnknownProviderError(ProviderError):
    """The requested provider is not in the registry."""


@dataclass
class ProviderConfig:
    key: str
    name: str
    endpoint: str
    models: list[str] = field(default_factory=list)
    default_model: str = ""
    local: bool = False

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> "ProviderConfig":
        return cls(
            key=key,
            name=data.get("name", key),
            endpoint=data["endpoint"],
            models=list(data.get("models", [])),
            default_model=data.get("default_model", ""),
            local=bool(data.get("local", False)),
        )


def load_providers(raw: dict[str, dict[str, Any]]) -> dict[str, ProviderConfig]:
    return {key: ProviderConfig.from_dict(key, data) for key, data in raw.items()}


class AIClient:
    """Sends a single-turn prompt to one provider and returns its text."""

    def __init__(
        self,
        provider: ProviderConfig,
        model: str = "",
        api_key: str = "",
        timeout: float = 60,
    ) -> None:
        self.provider = provider
        self.model = model or provider.default_model
        self.api_key = api_key
        self.timeout = timeout

    def validate(self) -> None:
        """Raise ``MissingCredentialError`` before any network traffic."""
        if not self.provider.local and not self.api_key:
            raise MissingCredentialError(f"API key not configured for {self.provider.name}")

    def complete(self, prompt: str) -> str:
        self.validate()
        logger.debug("Calling AI: %s %s", self.provider.key, self.model)
        messages = [{"role": "user", "content": prompt}]

        if self.provider.key == "anthropic":
            data = self._post(
                {"model": self.model, "max_tokens": MAX_TOKENS, "messages": messages},
                {"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION},
            )
            self._raise_for_error(data)
            return "\n".join(c.get("text", "") for c in data.get("content") or [])

        if self.provider.key in ("openai", "groq"):
            data = self._post(
                {"model": self.model, "max_tokens": MAX_TOKENS, "messages": messages},
                {"Authorization": f"Bearer {self.api_key}"},
            )
            self._raise_for_error(data)
            choices = data.get("choices") or [{}]
            return (choices[0].get("message") or {}).get("content", "") or ""

        if self.provider.key == "ollama":
            data = self._post({"model": self.model, "messages": messages, "stream": False}, {})
            self._raise_for_error(data)
            return (data.get("message") or {}).get("content", "") or ""

        raise UnknownProviderError(f"Provider not supported: {self.provider.key}")

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _post(self, body: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        req = urllib.request.Request(
            self.provider.endpoint,
            data=json.dumps(body).encode("utf-8"),
            method="POST",
            headers={"Content-Type": "application/json", **headers},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            # Providers explain failures in the JSON error body.
            raw = exc.read()
            if not raw:
                raise ProviderError(f"HTTP {exc.code} from {self.provider.name}") from exc
        except (urllib.error.URLError, OSError) as exc:
            raise ProviderError(f"Could not reach {self.provider.name}: {exc}") from exc

        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            raise ProviderError(f"Invalid response from {self.provider.name}") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected response from {self.provider.name}")
        return data

    @staticmethod
    def _raise_for_error(data: dict[str, Any]) -> None:
        error = data.get("error")
        if not error:
            return
        if isinstance(error, dict):
            raise ProviderError(error.get("message") or str(error))
        raise ProviderError(str(error))


def create_client(
    providers: dict[str, ProviderConfig],
    provider_key: str,
    model: str = "",
    api_key: str = "",
    timeout: float = 60,
) -> AIClient:
    """Look up *provider_key* and build a client; the key is checked up front."""
    provider: Optional[ProviderConfig] = providers.get(provider_key)
    if provider is None:
        raise UnknownProviderError(f"Provider not supported: {provider_key}")
    if model and provider.models and model not in provider.models:
        logger.warning("Model %s not listed for %s; using %s", model, provider_key, provider.default_model)
        model = provider.default_model
    client = AIClient(provider, model=model, api_key=api_key, timeout=timeout)
    client.validate()
    return client
