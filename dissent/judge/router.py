"""JudgeRouter: priority-ordered fallback over the configured providers.

Enabled providers (those with an API key) are tried in the configured order.
The first successful reply wins; a failing provider is logged and the next one
is tried. ``JudgeError`` is raised when nothing is enabled or every enabled
provider failed.
"""

from __future__ import annotations

import logging

from dissent.config import Settings
from dissent.exceptions import JudgeError
from dissent.interfaces import Completion
from dissent.judge.providers import PROVIDER_TYPES, LLMProvider

logger = logging.getLogger(__name__)


class JudgeRouter:
    """Judgment service backed by one or more HTTP chat providers."""

    def __init__(self, providers: list[LLMProvider]) -> None:
        self.providers = list(providers)

    @property
    def enabled_providers(self) -> list[LLMProvider]:
        return [provider for provider in self.providers if provider.enabled]

    def has_enabled_provider(self) -> bool:
        return bool(self.enabled_providers)

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> Completion:
        """Send *messages* through the provider chain.

        Raises:
            JudgeError: No provider is enabled, or all enabled providers failed.
        """
        enabled = self.enabled_providers
        if not enabled:
            raise JudgeError("No judge providers configured. Set a provider API key.")

        errors = []
        for provider in enabled:
            try:
                return await provider.complete(
                    messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    json_mode=json_mode,
                )
            except Exception as exc:
                logger.warning("Judge router: %s failed — %s", provider.provider_type, exc)
                errors.append(f"{provider.provider_type}: {exc}")

        raise JudgeError(f"All judge providers failed. {'; '.join(errors)}")


def build_judge(settings: Settings) -> JudgeRouter:
    """Build the router from ``settings.judge_providers`` in priority order."""
    providers = []
    for name in settings.judge_providers:
        provider_cls = PROVIDER_TYPES.get(name)
        if provider_cls is None:
            logger.warning("Judge router: unknown provider type '%s' — skipping", name)
            continue
        providers.append(provider_cls(
            api_key=getattr(settings, f"{name}_api_key"),
            model=getattr(settings, f"{name}_model"),
            base_url=getattr(settings, f"{name}_base_url"),
            timeout=settings.judge_timeout_seconds,
        ))

    router = JudgeRouter(providers)
    if not router.has_enabled_provider():
        logger.warning("Judge router: no provider API key set — conflicts will be heuristic-only")
    return router
