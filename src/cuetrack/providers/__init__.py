# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Transcript provider factory and registry.

This module provides a factory for creating transcript providers by name.
"""

from ..transcription_provider import TranscriptionProvider
from .deepgram_provider import DeepgramProvider
from .plain_provider import PlainProvider

# Registry of available providers
PROVIDER_REGISTRY: dict[str, type[TranscriptionProvider]] = {
    "plain": PlainProvider,
    "deepgram": DeepgramProvider,
}


def create_provider(provider_name: str) -> TranscriptionProvider:
    """
    Factory function to create a transcript provider.

    Args:
        provider_name: Name of the provider ("plain", "deepgram")

    Returns:
        New provider instance

    Raises:
        ValueError: If provider_name is not registered
    """
    provider_class = PROVIDER_REGISTRY.get(provider_name)
    if not provider_class:
        available = ", ".join(PROVIDER_REGISTRY.keys())
        raise ValueError(
            f"Unknown provider: {provider_name}. " f"Available providers: {available}"
        )

    return provider_class()


__all__ = [
    "create_provider",
    "PROVIDER_REGISTRY",
    "DeepgramProvider",
    "PlainProvider",
]
