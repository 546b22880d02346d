"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from flask import Flask

from tokenlife.core.config import BaseConfig, get_config, jwt_extended_config, load_token_settings
from tokenlife.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :raises ConfigurationError: When token settings are missing or out of
        range; the process must not start serving.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    # Fail fast before any extension is bound
    settings = load_token_settings(app.config)
    app.config.update(jwt_extended_config(settings.jwt))

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Proxy headers if running behind a reverse proxy
    from tokenlife.core import proxy

    proxy.init_app(app)

    from tokenlife.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from tokenlife.services.tokens import wiring

    wiring.init_app(app, settings)

    from tokenlife.core import cors

    cors.init_app(app)

    from tokenlife.api import init_app as init_api

    init_api(app)

    from tokenlife.core import errors

    errors.init_app(app)

    from tokenlife import cli as app_cli

    app_cli.init_app(app)

    return app
