"""Kestrel CLI - Main Entry Point.

Commands:
    serve             - Development server (uvicorn)
    migrate           - Apply pending migrations
    migrate:rollback  - Roll back the last migration batch
    routes            - List the route table
    make:controller   - Generate a controller
    make:model        - Generate a model
    make:migration    - Generate a migration
    version           - Show version information

The application is located through ``--app`` / ``KESTREL_APP`` as
``module:attribute``, where the attribute is an Application or a
factory returning one.
"""

import importlib
import logging
import platform
import sys
from pathlib import Path

import click

from .. import __version__
from ..app import Application
from ..faults import Fault
from . import __cli_name__
from .generators import make_controller, make_migration, make_model
from .output import error, info, kv, success, table, warning

logger = logging.getLogger("kestrel.cli")

DEFAULT_APP = "app:create_app"


def load_target(target: str):
    """Import ``module:attribute``."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise click.BadParameter(f"expected 'module:attribute', got '{target}'", param_hint="--app")
    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise click.BadParameter(f"cannot import '{module_name}': {exc}", param_hint="--app") from exc
    if not hasattr(module, attribute):
        raise click.BadParameter(f"'{module_name}' has no attribute '{attribute}'", param_hint="--app")
    return getattr(module, attribute)


def load_app(target: str) -> Application:
    obj = load_target(target)
    app = obj if isinstance(obj, Application) else obj()
    if not isinstance(app, Application):
        raise click.BadParameter(f"'{target}' did not produce an Application", param_hint="--app")
    logger.debug(f"Loaded {app!r} from {target}")
    return app


@click.group()
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option("--app", "app_target", envvar="KESTREL_APP", default=DEFAULT_APP, show_default=True,
              help="Application as module:attribute")
@click.pass_context
def cli(ctx, app_target: str):
    """Kestrel framework console."""
    ctx.ensure_object(dict)
    ctx.obj["app"] = app_target


def _app(ctx) -> Application:
    if "instance" not in ctx.obj:
        ctx.obj["instance"] = load_app(ctx.obj["app"])
    return ctx.obj["instance"]


# ============================================================================
# Server
# ============================================================================

@cli.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
@click.option("--reload", is_flag=True, help="Restart on code changes")
@click.option("--log-level", default="info", show_default=True)
@click.pass_context
def serve(ctx, host: str, port: int, reload: bool, log_level: str):
    """Start the development server."""
    import uvicorn

    target = ctx.obj["app"]
    factory = not isinstance(load_target(target), Application)
    info(f"Starting development server at http://{host}:{port}")
    info("Press Ctrl+C to stop.")
    uvicorn.run(target, host=host, port=port, reload=reload, factory=factory, log_level=log_level)


# ============================================================================
# Database
# ============================================================================

@cli.command("migrate")
@click.pass_context
def migrate(ctx):
    """Apply pending migrations."""
    runner = _app(ctx).migrator()
    try:
        applied = runner.migrate()
    except Fault as exc:
        error(exc.message)
        sys.exit(1)

    if not applied:
        info("Nothing to migrate.")
        return
    for name in applied:
        success(f"Migrated: {name}")


@cli.command("migrate:rollback")
@click.pass_context
def migrate_rollback(ctx):
    """Roll back the last batch of migrations."""
    runner = _app(ctx).migrator()
    try:
        rolled_back = runner.rollback()
    except Fault as exc:
        error(exc.message)
        sys.exit(1)

    if not rolled_back:
        info("Nothing to roll back.")
        return
    for name in rolled_back:
        success(f"Rolled back: {name}")


# ============================================================================
# Introspection
# ============================================================================

@cli.command("routes")
@click.pass_context
def routes(ctx):
    """List registered routes."""
    app = _app(ctx)
    rows = [
        (route.method, route.path, route.action_name, ", ".join(_middleware_name(m) for m in route.middleware))
        for route in app.router.iter_routes()
    ]
    if not rows:
        warning("No routes registered.")
        return
    table(["Method", "Path", "Action", "Middleware"], rows)


def _middleware_name(middleware) -> str:
    if isinstance(middleware, str):
        return middleware
    return getattr(middleware, "__name__", type(middleware).__name__)


@cli.command("version")
def version():
    """Show version information."""
    kv("Kestrel", __version__)
    kv("Python", platform.python_version())


# ============================================================================
# Generators
# ============================================================================

def _generate(kind: str, func, name: str, directory: str) -> None:
    try:
        path = func(name, Path(directory))
    except (ValueError, FileExistsError) as exc:
        error(str(exc))
        sys.exit(1)
    success(f"{kind} created: {path}")


@cli.command("make:controller")
@click.argument("name")
@click.option("--directory", default="app/controllers", show_default=True)
def make_controller_cmd(name: str, directory: str):
    """Generate a controller."""
    _generate("Controller", make_controller, name, directory)


@cli.command("make:model")
@click.argument("name")
@click.option("--directory", default="app/models", show_default=True)
def make_model_cmd(name: str, directory: str):
    """Generate a model."""
    _generate("Model", make_model, name, directory)


@cli.command("make:migration")
@click.argument("name")
@click.option("--directory", default="database/migrations", show_default=True)
def make_migration_cmd(name: str, directory: str):
    """Generate a migration."""
    _generate("Migration", make_migration, name, directory)


def main():
    """Entry point for `kestrel` command."""
    cli(obj={})


if __name__ == "__main__":
    main()
