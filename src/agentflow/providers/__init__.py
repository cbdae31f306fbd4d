"""
Providers module - LLM backends and the registry that builds them.

Model strings are "provider/model"; everything after the first slash is the
model name, so "together/meta-llama/Llama-3" names model "meta-llama/Llama-3"
on the together backend.
"""

import logging
from typing import Callable, Optional

from ..config import ProviderConfig
from ..errors import InvalidModelStringError, UnknownProviderError
from ..types import Provider
from .anthropic import AnthropicProvider
from .ollama import OllamaProvider
from .openai_compat import GroqProvider, OpenAIProvider, TogetherProvider

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, Callable[[ProviderConfig], Provider]] = {
	"ollama": OllamaProvider,
	"openai": OpenAIProvider,
	"groq": GroqProvider,
	"together": TogetherProvider,
	"anthropic": AnthropicProvider,
}


def create_provider(name: str, config: ProviderConfig) -> Provider:
	"""
	Build a backend by registry name.

	Raises:
		UnknownProviderError: If no backend is registered under that name
	"""
	factory = PROVIDERS.get(name)
	if factory is None:
		raise UnknownProviderError(name)
	return factory(config)


def create_providers(providers_config: dict[str, Optional[ProviderConfig]]) -> dict[str, Provider]:
	"""Build every configured backend; failures are logged and skipped."""
	providers: dict[str, Provider] = {}
	for name, provider_config in providers_config.items():
		if provider_config is None:
			continue
		try:
			providers[name] = create_provider(name, provider_config)
		except Exception as e:
			logger.warning(f"Failed to create provider {name}: {e}")
	return providers


def parse_model_string(model_string: str) -> tuple[str, str]:
	"""
	Split "provider/model" into its parts.

	Raises:
		InvalidModelStringError: If there is no slash or either side is empty
	"""
	provider, sep, model = model_string.partition("/")
	if not sep or not provider or not model:
		raise InvalidModelStringError(model_string)
	return provider, model


__all__ = [
	"PROVIDERS",
	"create_provider",
	"create_providers",
	"parse_model_string",
	"OllamaProvider",
	"OpenAIProvider",
	"GroqProvider",
	"TogetherProvider",
	"AnthropicProvider",
]
