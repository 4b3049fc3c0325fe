"""Run one digester batch headless against the simulated plant."""

import argparse
import sys
import time

from digester.actions import RunActions
from digester.config import SequenceConfig
from digester.engine import BatchEngine
from digester.sequence.phase import Phase
from digester.sequence.run_event import RunEvent
from sim.plant import SimulatedPlant
from system.utils import format_duration


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one digester batch against the simulated plant")
    parser.add_argument("--impregnation", type=float, default=10.0, help="impregnation duration (s)")
    parser.add_argument("--cooking", type=float, default=30.0, help="cooking duration (s)")
    parser.add_argument("--temperature", type=float, default=60.0, help="target temperature (°C)")
    parser.add_argument("--pressure", type=float, default=100.0, help="target pressure (bar)")
    parser.add_argument("--time-scale", type=float, default=1.0,
                        help="plant speed-up factor; the sequencer itself always runs in real time")
    parser.add_argument("--heat-up-timeout", type=float, default=300.0, help="TI300 wait timeout (s)")
    return parser


def run_batch(args: argparse.Namespace) -> int:
    plant = SimulatedPlant(time_scale=args.time_scale)
    engine = BatchEngine(plant, SequenceConfig(heat_up_timeout=args.heat_up_timeout))
    actions = RunActions(engine)

    def on_event(event, payload):
        if event == RunEvent.PHASE_STARTED:
            snap = plant.current_snapshot()
            print(f"[SIMULATOR CLI] -> {Phase.LABELS[payload]:<18} "
                  f"LI400={snap.li400} TI300={snap.ti300:.1f} PI300={snap.pi300}")

    engine.subscribe_event(on_event)

    print("[SIMULATOR CLI] Starting batch (Ctrl+C to abort)")
    print("-----------------------------------------------------------")
    plant.start()
    started = time.monotonic()
    try:
        ok, msg = actions.start({
            "cooking_duration": args.cooking,
            "target_temperature": args.temperature,
            "target_pressure": args.pressure,
            "impregnation_duration": args.impregnation,
        })
        if not ok:
            print(f"[SIMULATOR CLI] Start rejected: {msg}")
            return 2

        try:
            engine.wait_idle()
        except KeyboardInterrupt:
            print("\n[SIMULATOR CLI] Aborting...")
            actions.abort()
            engine.wait_idle()
    finally:
        plant.stop()

    outcome = engine.last_outcome
    print("-----------------------------------------------------------")
    print(f"[SIMULATOR CLI] {outcome.describe()}")
    print(f"[SIMULATOR CLI] Elapsed:   {format_duration(time.monotonic() - started)}")
    print(f"[SIMULATOR CLI] Run state: {engine.current_state()}")
    return 0 if outcome.ok else 1


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return run_batch(args)


if __name__ == "__main__":
    sys.exit(main())
