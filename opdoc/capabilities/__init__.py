"""Per-language analyze/transform capabilities and their registry."""

from opdoc.capabilities.base import (
    Diagnostic,
    LanguageCapability,
    PassThroughCapability,
    TextCapability,
    normalize_text,
)
from opdoc.capabilities.builtin import (
    JavaScriptCapability,
    JSONCapability,
    PHPCapability,
    PythonCapability,
    YAMLCapability,
)
from opdoc.capabilities.loader import CapabilityLoader
from opdoc.capabilities.registry import CapabilityRegistry, default_registry

__all__ = [
    "CapabilityLoader",
    "CapabilityRegistry",
    "Diagnostic",
    "JSONCapability",
    "JavaScriptCapability",
    "LanguageCapability",
    "PHPCapability",
    "PassThroughCapability",
    "PythonCapability",
    "TextCapability",
    "YAMLCapability",
    "default_registry",
    "normalize_text",
]
