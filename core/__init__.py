"""Core components of the translation gateway.

This package contains the translation backends and orchestrator, the layered translation cache,
and the telemetry recorder.
"""

from core.version import VERSION

__all__: list[str] = ["VERSION"]
