from flask import Flask, jsonify
import sys

from system.log_utils import debug
debug("starting service", version="1.0.0")

from system.device_init import init_preferences_service
init_preferences_service()

# Use CLI arg if provided ("sim" / "field"), else the simulator preference
from system import services
from system.preferences import KEY_SIMULATOR_ENABLED
if len(sys.argv) > 1 and sys.argv[1] in ("sim", "field"):
    use_sim = sys.argv[1] == "sim"
else:
    use_sim = services.preferences_service.get_bool(KEY_SIMULATOR_ENABLED, True)

from system.device_init import init_transport, init_engine, init_run_actions, init_live_status_service
init_transport(use_sim)
init_engine()
init_run_actions()
init_live_status_service()

from digester.routes import digester_bp

app = Flask(__name__)

app.register_blueprint(digester_bp, url_prefix="/digester")

@app.route('/')
def index():
    return jsonify({"service": "digester", "state": services.engine_service.current_state()})

def cleanup():
    """Bring the plant to a safe state before exit."""
    debug("Cleaning up resources...")
    engine = services.engine_service
    if engine is not None and engine.is_running():
        engine.abort()
    debug("Cleanup complete")

if __name__ == '__main__':
    import atexit

    # Register cleanup handlers
    atexit.register(cleanup)

    app.run(host="0.0.0.0", port=5001, debug=False, use_reloader=False)
