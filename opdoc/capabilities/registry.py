"""Capability registry keyed by file extension or language id.

Adding a new language requires only defining a capability class and
registering an instance under its extensions.
"""

from __future__ import annotations

import logging

from opdoc.capabilities.base import LanguageCapability, PassThroughCapability
from opdoc.capabilities.builtin import BUILTIN_CAPABILITIES
from opdoc.errors import RegistryFrozenError

logger = logging.getLogger(__name__)


def normalize_key(key: str) -> str:
    """Lower-case a key; extensions keep their leading dot, language ids have none."""
    return key.strip().lower()


class CapabilityRegistry:
    """Maps extensions and language ids to capabilities.

    Populate at startup, then ``freeze()`` before running the pipeline; a
    frozen registry is only read, so concurrent lookups need no locking.
    """

    def __init__(self, fallback: LanguageCapability | None = None) -> None:
        self._capabilities: dict[str, LanguageCapability] = {}
        self._fallback = fallback or PassThroughCapability()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def fallback(self) -> LanguageCapability:
        return self._fallback

    def register(self, key: str, capability: LanguageCapability) -> None:
        """Register a capability. Last registration for a key wins."""
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register '{key}': registry is frozen")
        if not isinstance(capability, LanguageCapability):
            raise TypeError(f"{capability!r} does not implement LanguageCapability")
        norm = normalize_key(key)
        if not norm or norm == ".":
            raise ValueError(f"Invalid capability key: {key!r}")
        previous = self._capabilities.get(norm)
        if previous is not None and previous is not capability:
            logger.debug("replacing capability for %s: %s -> %s", norm, previous.name, capability.name)
        self._capabilities[norm] = capability

    def resolve(self, key: str | None) -> LanguageCapability:
        """Return the capability for ``key``, or the pass-through fallback."""
        if not key:
            return self._fallback
        return self._capabilities.get(normalize_key(key), self._fallback)

    def list(self) -> list[str]:
        """Registered keys in sorted order."""
        return sorted(self._capabilities)

    def items(self) -> list[tuple[str, LanguageCapability]]:
        return sorted(self._capabilities.items())

    def freeze(self) -> CapabilityRegistry:
        self._frozen = True
        return self


def default_registry() -> CapabilityRegistry:
    """A fresh, unfrozen registry holding the built-in capabilities."""
    registry = CapabilityRegistry()
    for capability, keys in BUILTIN_CAPABILITIES:
        for key in keys:
            registry.register(key, capability)
    return registry
