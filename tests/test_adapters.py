"""
Tests for the adapter protocol, registry and mock adapter.
"""

import pytest

from mintsetup.adapters.base import ExecutionContext
from mintsetup.adapters.mock import MockAdapter
from mintsetup.adapters.registry import AdapterRegistry
from mintsetup.core.errors import UnknownAdapterError
from mintsetup.core.models import Outcome, ResourceKind, package, preference

# ── Protocol Tests ───────────────────────────────────────────────────


class TestExecutionContext:
    def test_spec_and_id(self):
        ctx = ExecutionContext(resource=package("git"))
        assert ctx.resource_id == "git"
        assert ctx.spec.names == ["git"]
        assert ctx.timeout is None
        assert not ctx.dry_run


# ── Mock Adapter Tests ───────────────────────────────────────────────


class TestMockAdapter:
    def test_default_success(self):
        mock = MockAdapter(adapter_name="test-mock")
        ctx = ExecutionContext(resource=package("git"))
        assert not mock.probe(ctx)
        outcome = mock.apply(ctx)
        assert outcome.applied
        assert outcome.metadata == {"adapter": "test-mock", "mock": True}
        assert mock.call_count == 1

    def test_applied_becomes_satisfied(self):
        mock = MockAdapter()
        ctx = ExecutionContext(resource=package("git"))
        mock.apply(ctx)
        assert mock.probe(ctx)
        assert mock.probe_log == ["git"]

    def test_custom_response(self):
        mock = MockAdapter()
        mock.set_response("git", Outcome.skip("git", reason="custom"))
        outcome = mock.apply(ExecutionContext(resource=package("git")))
        assert outcome.reason == "custom"

    def test_configured_failure(self):
        mock = MockAdapter()
        mock.set_failure("git", "E: broken", transient=True)
        outcome = mock.apply(ExecutionContext(resource=package("git")))
        assert outcome.failed
        assert outcome.transient
        assert outcome.error == "E: broken"

    def test_configured_error_raises(self):
        mock = MockAdapter()
        mock.set_error("git", RuntimeError("boom"))
        with pytest.raises(RuntimeError):
            mock.apply(ExecutionContext(resource=package("git")))

    def test_reset(self):
        mock = MockAdapter()
        mock.set_satisfied("git")
        mock.apply(ExecutionContext(resource=package("curl")))
        mock.reset()
        assert mock.call_count == 0
        assert not mock.probe(ExecutionContext(resource=package("git")))

    def test_repr(self):
        assert repr(MockAdapter("flatpak", adapter_name="m")) == "<MockAdapter name='m' kind=flatpak>"


# ── Registry Tests ───────────────────────────────────────────────────


class TestAdapterRegistry:
    def test_register_and_get(self):
        registry = AdapterRegistry()
        mock = MockAdapter(ResourceKind.FLATPAK, adapter_name="flatpak-test")
        registry.register(mock)
        assert registry.get("flatpak") is mock
        assert registry.get(ResourceKind.PACKAGE) is None
        assert registry.list_adapters() == ["flatpak"]

    def test_overwrite(self):
        registry = AdapterRegistry()
        registry.register(MockAdapter(adapter_name="first"))
        registry.register(MockAdapter(adapter_name="second"))
        assert registry.get("package").name == "second"

    def test_unregister(self):
        registry = AdapterRegistry()
        registry.register(MockAdapter())
        registry.unregister("package")
        assert registry.list_adapters() == []

    def test_resolve_unknown_kind(self):
        registry = AdapterRegistry()
        with pytest.raises(UnknownAdapterError) as exc:
            registry.resolve(package("git"))
        assert exc.value.resource_id == "git"

    def test_mock_mode_creates_one_mock_per_kind(self):
        registry = AdapterRegistry(mock_mode=True)
        pkg = registry.resolve(package("git"))
        pref = registry.resolve(preference("icons", "org.cinnamon.desktop.interface", "icon-theme", "Papirus"))
        assert isinstance(pkg, MockAdapter)
        assert pkg.kind == ResourceKind.PACKAGE
        assert pref.kind == ResourceKind.PREFERENCE
        assert registry.get("package") is pkg

    def test_mock_mode_shared_adapter(self):
        registry = AdapterRegistry()
        shared = MockAdapter()
        registry.set_mock_mode(True, mock_adapter=shared)
        assert registry.mock_mode
        assert registry.get("extension") is shared

    def test_adapter_status(self):
        registry = AdapterRegistry()
        registry.register(MockAdapter(ResourceKind.FILE, adapter_name="files", concurrency_safe=False))
        registry.register(MockAdapter(ResourceKind.FLATPAK, adapter_name="fp", available=False))
        status = registry.adapter_status()
        assert status["file"] == {
            "name": "files",
            "kind": "file",
            "available": True,
            "concurrency_safe": False,
            "type": "MockAdapter",
        }
        assert status["flatpak"]["available"] is False
