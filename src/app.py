from __future__ import annotations

import math
import os
import sys

from flask import Flask, jsonify, request

from physlab.logging_utils import get_logger
from physlab.scenarios import build_scenario, describe_scenarios
from physlab.simulation import SimulationAborted, run

logger = get_logger("app")


def create_app(config_object: object | str | None = None) -> Flask:
    """Application factory with optional config object."""
    app = Flask(__name__)

    # --- Configuration ------------------------------------------------
    config_object = config_object or os.environ.get("FLASK_CONFIG", "config.DevelopmentConfig")

    if isinstance(config_object, str):
        sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
        from werkzeug.utils import import_string

        config_object = import_string(config_object)

    app.config.from_object(config_object)

    def to_serializable(results):
        return [
            {
                "time": frame.time,
                "coordinates": list(frame.coordinates),
                "kinetic_energy": frame.kinetic_energy,
                "potential_energy": frame.potential_energy,
                "total_error": frame.total_error,
            }
            for frame in results.frames
        ]

    def as_number(data, key, default):
        value = data.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{key} must be a number, got {value!r}")
        if not math.isfinite(value):
            raise ValueError(f"{key} must be finite, got {value!r}")
        return float(value)

    # --- Routes -------------------------------------------------------
    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.get("/systems")
    def list_systems():
        """Available scenarios with their default parameters."""
        return jsonify({"systems": describe_scenarios()})

    @app.post("/simulate")
    def simulate_endpoint():
        if not request.is_json:
            return jsonify({"error": "JSON body required"}), 400

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "JSON object required"}), 400

        name = data.get("system")
        if not isinstance(name, str):
            return jsonify({"error": "system must be a scenario name"}), 400

        try:
            step = as_number(data, "step", app.config["DEFAULT_STEP"])
            simulation_time = as_number(data, "simulation_time", app.config["DEFAULT_SIMULATION_TIME"])
            integrator = data.get("integrator", app.config["DEFAULT_INTEGRATOR"])
            if not isinstance(integrator, str):
                raise ValueError(f"integrator must be a name, got {integrator!r}")
            parameters = data.get("parameters") or {}
            if not isinstance(parameters, dict):
                raise ValueError("parameters must be an object")

            system = build_scenario(name, parameters, integrator)
            results = run(system, step=step, simulation_time=simulation_time, max_frames=app.config["MAX_FRAMES"])
        except SimulationAborted as e:
            logger.warning("Simulation of %s aborted: %s", name, e)
            return (
                jsonify(
                    {
                        "system": name,
                        "frames": to_serializable(e.results),
                        "final_time": e.results.final_time,
                        "total_frames": e.results.total_frames,
                        "error": str(e.cause),
                    }
                ),
                422,
            )
        except ValueError as e:
            logger.info("Rejected /simulate request: %s", e)
            return jsonify({"error": str(e)}), 400
        except Exception:
            logger.exception("Unexpected failure simulating %s", name)
            return jsonify({"error": "Internal simulation error"}), 500

        return jsonify(
            {
                "system": name,
                "frames": to_serializable(results),
                "final_time": results.final_time,
                "total_frames": results.total_frames,
            }
        )

    return app


app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5000)
