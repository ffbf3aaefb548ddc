"""Tests for opdoc.capabilities.loader: entry points and configured references."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from opdoc.capabilities.base import Diagnostic, PassThroughCapability
from opdoc.capabilities.loader import ENTRY_POINT_GROUP, CapabilityLoader, import_reference
from opdoc.capabilities.registry import CapabilityRegistry, default_registry
from opdoc.errors import CapabilityNotFoundError


class RustCapability:
    name = "rust"

    def analyze(self, content: str) -> list[Diagnostic]:
        return []

    def transform(self, content: str) -> str:
        return content


NOT_A_CAPABILITY = object()


# -- Helpers ----------------------------------------------------------------


def make_entry_point(name: str, load_return=None, load_error: Exception | None = None):
    """Build a mock entry point with .name and .load()."""
    ep = MagicMock()
    ep.name = name
    if load_error is not None:
        ep.load.side_effect = load_error
    else:
        ep.load.return_value = load_return
    return ep


def _ep_side_effect(eps: list):
    def _side_effect(*, group):
        return eps if group == ENTRY_POINT_GROUP else []
    return _side_effect


# -- import_reference ---------------------------------------------------------


class TestImportReference:
    def test_colon_form(self):
        assert import_reference("opdoc.capabilities.base:PassThroughCapability") is PassThroughCapability

    def test_dotted_form(self):
        assert import_reference("opdoc.capabilities.base.PassThroughCapability") is PassThroughCapability

    def test_missing_attribute(self):
        with pytest.raises(ImportError):
            import_reference("opdoc.capabilities.base:Nope")

    def test_missing_module(self):
        with pytest.raises(ImportError):
            import_reference("no_such_module_xyz:Thing")

    def test_invalid_reference(self):
        with pytest.raises(ImportError):
            import_reference("nodots")


# -- Entry points -------------------------------------------------------------


@patch("opdoc.capabilities.loader.importlib.metadata.entry_points")
def test_discover(mock_eps):
    mock_eps.side_effect = _ep_side_effect([make_entry_point(".rs", RustCapability)])
    assert CapabilityLoader().discover() == [".rs"]


@patch("opdoc.capabilities.loader.importlib.metadata.entry_points")
def test_entry_point_class_is_instantiated(mock_eps):
    mock_eps.side_effect = _ep_side_effect([make_entry_point(".rs", RustCapability)])
    registry = CapabilityRegistry()
    loaded = CapabilityLoader().load_into(registry)

    assert loaded == [".rs"]
    assert isinstance(registry.resolve(".rs"), RustCapability)


@patch("opdoc.capabilities.loader.importlib.metadata.entry_points")
def test_entry_point_instance_is_used(mock_eps):
    instance = RustCapability()
    mock_eps.side_effect = _ep_side_effect([make_entry_point("rust", instance)])
    registry = CapabilityRegistry()
    CapabilityLoader().load_into(registry)
    assert registry.resolve("rust") is instance


@patch("opdoc.capabilities.loader.importlib.metadata.entry_points")
def test_broken_entry_point_is_skipped(mock_eps):
    mock_eps.side_effect = _ep_side_effect([
        make_entry_point(".bad", load_error=ImportError("boom")),
        make_entry_point(".odd", NOT_A_CAPABILITY),
        make_entry_point(".rs", RustCapability),
    ])
    registry = CapabilityRegistry()
    loaded = CapabilityLoader().load_into(registry)

    assert loaded == [".rs"]
    assert registry.resolve(".bad").name == "passthrough"
    assert registry.resolve(".odd").name == "passthrough"


# -- Configured references ----------------------------------------------------


@patch("opdoc.capabilities.loader.importlib.metadata.entry_points")
def test_configured_overrides_builtin(mock_eps):
    mock_eps.side_effect = _ep_side_effect([])
    registry = default_registry()
    CapabilityLoader({".py": "opdoc.capabilities.base:PassThroughCapability"}).load_into(registry)
    assert registry.resolve(".py").name == "passthrough"


@patch("opdoc.capabilities.loader.importlib.metadata.entry_points")
def test_configured_overrides_entry_point(mock_eps):
    mock_eps.side_effect = _ep_side_effect([make_entry_point(".rs", RustCapability)])
    registry = CapabilityRegistry()
    CapabilityLoader({".rs": "opdoc.capabilities.base:PassThroughCapability"}).load_into(registry)
    assert registry.resolve(".rs").name == "passthrough"


@patch("opdoc.capabilities.loader.importlib.metadata.entry_points")
def test_configured_missing_raises(mock_eps):
    mock_eps.side_effect = _ep_side_effect([])
    loader = CapabilityLoader({".rs": "no_such_module_xyz:Rust"})
    with pytest.raises(CapabilityNotFoundError, match="no_such_module_xyz"):
        loader.load_into(CapabilityRegistry())


@patch("opdoc.capabilities.loader.importlib.metadata.entry_points")
def test_configured_non_capability_raises(mock_eps):
    mock_eps.side_effect = _ep_side_effect([])
    loader = CapabilityLoader({".x": "opdoc.errors:OpdocError"})
    with pytest.raises(CapabilityNotFoundError, match="not a LanguageCapability"):
        loader.load_into(CapabilityRegistry())
