"""
Demo application: a home page, a contact form and user management.

Run it with:

    kestrel --app demo:create_app migrate
    kestrel --app demo:create_app serve --reload
"""

from pathlib import Path
from typing import Optional

from kestrel import Application, ConfigLoader, configure_logging

from .controllers import HomeController, UserController
from .routes import register_routes

BASE_PATH = Path(__file__).resolve().parent


def create_app(config: Optional[ConfigLoader] = None) -> Application:
    config = config or ConfigLoader.load(env_file=".env")
    configure_logging(config)

    app = Application(config, base_path=BASE_PATH, routes=register_routes)
    app.register_controller("HomeController", HomeController)
    app.register_controller("UserController", UserController)
    return app
