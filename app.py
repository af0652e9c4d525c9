# app.py
from typing import Optional

from flask import Flask

from application.landed_cost_service import LandedCostService
from core.config import Config
from core.logging_config import configure_logging
from interface.api import EXTENSION_KEY, api_bp


def create_app(config_object=Config, service: Optional[LandedCostService] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app)

    if service is not None:
        app.extensions[EXTENSION_KEY] = service

    app.register_blueprint(api_bp)

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
