"""
app.py — Flask Application Factory for the IPA re-signing service.
"""
import os
import argparse
import logging
from flask import Flask
from flask_cors import CORS
from pythonjsonlogger.json import JsonFormatter

import extensions
from config import config_map

# ── Logging ────────────────────────────────────────────────────────────────────
handler = logging.StreamHandler()
handler.setFormatter(JsonFormatter(
    "%(asctime)s %(levelname)s %(name)s %(message)s"
))
logging.basicConfig(level=logging.INFO, handlers=[handler])

logger = logging.getLogger(__name__)


def create_app(env: str = None, **overrides) -> Flask:
    """Application factory."""
    env = env or os.environ.get("FLASK_ENV", "development")
    cfg = config_map.get(env, config_map["default"])

    app = Flask(__name__)
    app.config.from_object(cfg)
    app.config.update(overrides)
    app.config["BASE_URL"] = app.config["BASE_URL"].rstrip("/")

    # ── Extensions ────────────────────────────────────────────────────────────
    CORS(app, origins=app.config["CORS_ORIGINS"])
    extensions.init_app(app)

    # ── Blueprints ────────────────────────────────────────────────────────────
    from blueprints.api import api_bp
    app.register_blueprint(api_bp)

    logger.info("Resign service created [env=%s base_url=%s output=%s]",
                env, app.config["BASE_URL"], app.config["OUTPUT_FOLDER"])
    return app


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="IPA re-signing service")
    parser.add_argument("--base-url", default=None,
                        help="Base URL for generated download links (env: BASE_URL)")
    parser.add_argument("--port", default=os.environ.get("PORT", "8080"),
                        help="Port to listen on (env: PORT)")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    base_url = args.base_url or os.environ.get("BASE_URL")
    if not base_url:
        logger.warning("BASE_URL not set, using default value")
        base_url = f"http://localhost:{args.port}"

    app = create_app(os.environ.get("FLASK_ENV", "production"),
                     BASE_URL=base_url, PORT=args.port)
    logger.info("Server starting on port %s", args.port)
    app.run(host="0.0.0.0", port=int(args.port))


if __name__ == "__main__":
    main()
