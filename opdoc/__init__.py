"""opdoc: parse operation documents and apply them to a project tree."""

from opdoc.batch import BatchDriver, collect_sources
from opdoc.capabilities import CapabilityRegistry, LanguageCapability, default_registry
from opdoc.config import OpdocConfig, load_config
from opdoc.errors import OpdocError
from opdoc.execution import DocumentOutcome, ExecutionReport
from opdoc.parser import parse_document
from opdoc.pipeline import DocumentPipeline

__version__ = "0.1.0"

__all__ = [
    "BatchDriver",
    "CapabilityRegistry",
    "DocumentOutcome",
    "DocumentPipeline",
    "ExecutionReport",
    "LanguageCapability",
    "OpdocConfig",
    "OpdocError",
    "__version__",
    "collect_sources",
    "default_registry",
    "load_config",
    "parse_document",
]
