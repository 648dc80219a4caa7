"""
Kestrel CLI.

Usage:
    kestrel serve
    kestrel migrate
    kestrel migrate:rollback
    kestrel routes
    kestrel make:controller UserController
    kestrel version
"""

__cli_name__ = "kestrel"


def main():
    """Wrapper to avoid eager import of __main__ which causes warnings with -m."""
    from .__main__ import main as _main
    return _main()
