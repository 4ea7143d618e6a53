"""Fakes standing in for the network, the endpoint and the GPS receiver."""

from .fix_mocks import ScriptedFixSource
from .network_mocks import FakeTransport, ScriptedProbe

__all__ = ["FakeTransport", "ScriptedFixSource", "ScriptedProbe"]
