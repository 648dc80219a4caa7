"""
View - renders Blade views through a sandboxed Jinja2 environment.

Provides:
- Dotted view names resolved under one views directory
- Compile-once caching (Jinja2 template cache, reloaded on file change)
- Autoescaped output, None rendered as ""
- Shared data merged under per-call data
- Session-aware helpers (@csrf, @old, @error)
"""

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from jinja2 import ChainableUndefined, TemplateNotFound, TemplateSyntaxError
from jinja2.sandbox import SandboxedEnvironment

from ..faults import TemplateNotFoundFault, TemplateSyntaxFault
from .compiler import BladeCompiler
from .helpers import SESSION_KEY, create_view_filters, create_view_globals, finalize
from .loader import ViewLoader

logger = logging.getLogger("kestrel.templates")


class View:
    """
    Blade view renderer.

    Args:
        views_path: Root directory of the ``.blade.html`` files
        app_url: Base URL used by the ``url()`` helper
        auto_reload: Recompile views whose file changed

    Example:
        view = View("resources/views")
        view.share("app_name", "Kestrel")
        html = view.render("users.index", {"users": users}, session=session)
    """

    def __init__(
        self,
        views_path: str = "resources/views",
        *,
        app_url: str = "",
        auto_reload: bool = True,
        compiler: Optional[BladeCompiler] = None,
    ):
        self.views_path = Path(views_path)
        self.compiler = compiler or BladeCompiler()
        self.loader = ViewLoader(str(self.views_path), self.compiler)
        self.env = SandboxedEnvironment(
            loader=self.loader,
            autoescape=True,
            undefined=ChainableUndefined,
            finalize=finalize,
            keep_trailing_newline=True,
            auto_reload=auto_reload,
        )
        self.env.globals.update(create_view_globals(app_url))
        self.env.filters.update(create_view_filters())
        self._shared: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Shared data
    # ------------------------------------------------------------------

    def share(self, key: str, value: Any) -> None:
        """Make ``key`` available to every view rendered afterwards."""
        self._shared[key] = value

    def get_shared(self, key: Optional[str] = None) -> Any:
        if key is None:
            return dict(self._shared)
        return self._shared.get(key)

    def register_global(self, name: str, value: Any) -> None:
        self.env.globals[name] = value

    def register_filter(self, name: str, func: Any) -> None:
        self.env.filters[name] = func

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _context(self, data: Optional[Mapping[str, Any]], session: Any) -> Dict[str, Any]:
        context = {**self._shared, **dict(data or {})}
        if session is not None:
            context[SESSION_KEY] = session
        return context

    def render(
        self,
        name: str,
        data: Optional[Mapping[str, Any]] = None,
        session: Any = None,
    ) -> str:
        """
        Render a view to a string.

        Raises:
            TemplateNotFoundFault: The view or one of its layouts/includes is missing
            TemplateSyntaxFault: The compiled view is not valid
        """
        try:
            template = self.env.get_template(name)
            html = template.render(self._context(data, session))
        except TemplateNotFound as exc:
            raise TemplateNotFoundFault(exc.name or name) from exc
        except TemplateSyntaxError as exc:
            raise TemplateSyntaxFault(exc.name or name, f"{exc.message} (line {exc.lineno})") from exc

        logger.debug(f"Rendered view {name}")
        return html

    def render_string(
        self,
        source: str,
        data: Optional[Mapping[str, Any]] = None,
        session: Any = None,
    ) -> str:
        """Compile and render Blade source that is not stored in a file."""
        compiled = self.compiler.compile(source)
        try:
            template = self.env.from_string(compiled)
            return template.render(self._context(data, session))
        except TemplateNotFound as exc:
            raise TemplateNotFoundFault(exc.name or "<string>") from exc
        except TemplateSyntaxError as exc:
            raise TemplateSyntaxFault("<string>", f"{exc.message} (line {exc.lineno})") from exc

    def compile(self, name: str) -> str:
        """Return the compiled Jinja2 source of a view."""
        path = self.loader.resolve(name)
        if path is None or not path.is_file():
            raise TemplateNotFoundFault(name)
        return self.compiler.compile(path.read_text(encoding=self.loader.encoding), name)

    def exists(self, name: str) -> bool:
        return self.loader.exists(name)

    def list_views(self) -> list:
        return self.loader.list_templates()

    def clear_cache(self) -> None:
        if self.env.cache is not None:
            self.env.cache.clear()
