"""Test helpers for NSX-T upgrade tests."""

from .fake_nsx import FakeCancelEvent, FakeClock, FakeNsxFabric

__all__ = ["FakeCancelEvent", "FakeClock", "FakeNsxFabric"]
