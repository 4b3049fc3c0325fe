# system/device_init.py
from system import services
from system.log_utils import info, debug, error


def init_preferences_service():
    from system.preferences import Preferences
    services.preferences_service = Preferences()


def init_transport(use_simulator: bool):
    if not use_simulator:
        # the field controller client is provided by the plant integration, not this service
        error("[DEVICE] no field transport configured and simulator disabled")
        raise RuntimeError("No plant transport available: enable the simulator preference")

    from sim.plant import SimulatedPlant
    import atexit

    plant = SimulatedPlant()
    plant.start()
    atexit.register(plant.stop)
    services.transport = plant
    info("[DEVICE] Using simulated plant transport")


def init_engine():
    from digester.config import SEQUENCE_PREF_KEYS, load_sequence_config
    from digester.engine import BatchEngine

    prefs = services.preferences_service
    config = load_sequence_config(prefs)
    services.engine_service = BatchEngine(services.transport, config)
    debug(f"[DEVICE] engine ready, poll interval {config.poll_interval}s")

    # picked up by the next start_run; a run in progress keeps its config
    def _reload_config(key, value):
        services.engine_service.config = load_sequence_config(prefs)

    if prefs is not None:
        for key in SEQUENCE_PREF_KEYS:
            prefs.register_callback(key, _reload_config)


def init_run_actions():
    from digester.actions import RunActions
    from digester.config import BATCH_PREF_KEYS, default_batch_parameters

    prefs = services.preferences_service
    services.run_actions = RunActions(services.engine_service, default_batch_parameters(prefs))

    def _reload_defaults(key, value):
        services.run_actions.set_defaults(default_batch_parameters(prefs))

    if prefs is not None:
        for key in BATCH_PREF_KEYS:
            prefs.register_callback(key, _reload_defaults)


def init_live_status_service():
    from digester.live_status_service import LiveStatusService
    services.live_status_service = LiveStatusService()

    if services.engine_service is not None:
        services.live_status_service.attach_engine(services.engine_service)
    if services.transport is not None:
        services.live_status_service.attach_transport(services.transport)
