"""Translation telemetry.

Provides the bounded-queue recorder that writes one JSON line per translation request.
"""

from core.telemetry.recorder import TelemetryError, TelemetryQueueFullError, TranslationRecorder

__all__: list[str] = ["TelemetryError", "TelemetryQueueFullError", "TranslationRecorder"]
