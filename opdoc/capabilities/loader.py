"""Load externally supplied capabilities via entry points or config."""

from __future__ import annotations

import importlib
import importlib.metadata
import logging

from opdoc.capabilities.base import LanguageCapability
from opdoc.capabilities.registry import CapabilityRegistry
from opdoc.errors import CapabilityNotFoundError

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "opdoc.capabilities"


def _instantiate(obj: object) -> object:
    """Entry points may name a class or a ready instance."""
    return obj() if isinstance(obj, type) else obj


def import_reference(reference: str) -> object:
    """Import ``module:attr`` (or ``module.attr``) and return the attribute."""
    if ":" in reference:
        module_path, _, attr = reference.partition(":")
    else:
        module_path, _, attr = reference.rpartition(".")
    if not module_path or not attr:
        raise ImportError(f"Invalid reference '{reference}': expected 'module:attr'")
    module = importlib.import_module(module_path)
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ImportError(f"Module '{module_path}' has no attribute '{attr}'") from e


class CapabilityLoader:
    """Discovers capabilities and registers them before the registry is frozen.

    Entry point names are registry keys (``.rs``, ``rust``); config entries
    override entry points for the same key.
    """

    def __init__(self, configured: dict[str, str] | None = None) -> None:
        self._configured = dict(configured or {})

    def discover(self) -> list[str]:
        """Names of capabilities published under the entry point group."""
        return [ep.name for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP)]

    def load_into(self, registry: CapabilityRegistry) -> list[str]:
        """Register every discovered and configured capability. Returns the keys."""
        loaded: list[str] = []
        for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
            try:
                capability = _instantiate(ep.load())
            except Exception:
                logger.warning("Failed to load capability entry point %s", ep.name, exc_info=True)
                continue
            if not isinstance(capability, LanguageCapability):
                logger.warning("Entry point %s is not a LanguageCapability; skipped", ep.name)
                continue
            registry.register(ep.name, capability)
            loaded.append(ep.name)

        # Explicitly configured capabilities must load; no silent fallback.
        for key, reference in self._configured.items():
            try:
                capability = _instantiate(import_reference(reference))
            except ImportError as e:
                raise CapabilityNotFoundError(key, reference, str(e)) from e
            if not isinstance(capability, LanguageCapability):
                raise CapabilityNotFoundError(key, reference, "not a LanguageCapability")
            registry.register(key, capability)
            loaded.append(key)

        if loaded:
            logger.info("loaded %d external capability key(s): %s", len(loaded), ", ".join(loaded))
        return loaded
