# services.py
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from digester.actions import RunActions
    from digester.engine import BatchEngine
    from digester.live_status_service import LiveStatusService
    from digester.transport.iface import PlantTransport
    from system.preferences import Preferences

# ------------------------------------------------------------------------------
# Service singletons (initialized in order in device_init.py)
# ------------------------------------------------------------------------------

preferences_service: Preferences = None

transport: PlantTransport = None

engine_service: BatchEngine = None

run_actions: RunActions = None

live_status_service: LiveStatusService = None
