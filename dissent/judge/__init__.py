"""Judgment service: HTTP chat providers behind a priority fallback router."""

from dissent.judge.providers import AnthropicProvider, GeminiProvider, OpenAIProvider
from dissent.judge.router import JudgeRouter, build_judge

__all__ = ["AnthropicProvider", "GeminiProvider", "JudgeRouter", "OpenAIProvider", "build_judge"]
