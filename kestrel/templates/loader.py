"""
View Loader - resolves dotted view names to Blade files and compiles them.

Supports:
- Dotted names ("users.show" -> <views_path>/users/show.blade.html)
- Slash names ("users/show" resolves the same file)
- Compile-on-load: Jinja2 receives the compiled source, never the Blade text
- Auto-reload through file modification times
"""

import os
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from jinja2 import BaseLoader, TemplateNotFound

from .compiler import BladeCompiler


EXTENSION = ".blade.html"


class ViewLoader(BaseLoader):
    """
    Filesystem loader for Blade views.

    Args:
        views_path: Root directory of the views
        compiler: Compiler used to turn Blade source into Jinja2 source
        encoding: Source file encoding
    """

    def __init__(
        self,
        views_path: str,
        compiler: Optional[BladeCompiler] = None,
        encoding: str = "utf-8",
    ):
        self.views_path = Path(views_path)
        self.compiler = compiler or BladeCompiler()
        self.encoding = encoding

    def resolve(self, name: str) -> Optional[Path]:
        """
        Map a view name to its file path.

        Returns None for names that would escape the views directory.
        """
        if name.endswith(EXTENSION):
            name = name[: -len(EXTENSION)]
        parts = [p for p in name.replace("/", ".").split(".") if p]
        if not parts or any(p in ("..", "~") or os.sep in p for p in parts):
            return None
        return self.views_path.joinpath(*parts[:-1], parts[-1] + EXTENSION)

    def get_source(
        self,
        environment: Any,
        template: str
    ) -> Tuple[str, Optional[str], Optional[Callable[[], bool]]]:
        """
        Load and compile a view.

        Returns:
            Tuple of (compiled source, filename, uptodate_func)

        Raises:
            TemplateNotFound: If the view file does not exist
        """
        path = self.resolve(template)
        if path is None or not path.is_file():
            raise TemplateNotFound(template)

        source = path.read_text(encoding=self.encoding)
        mtime = path.stat().st_mtime

        def uptodate() -> bool:
            try:
                return path.stat().st_mtime == mtime
            except OSError:
                return False

        return self.compiler.compile(source, template), str(path), uptodate

    def exists(self, name: str) -> bool:
        path = self.resolve(name)
        return path is not None and path.is_file()

    def list_templates(self) -> List[str]:
        """List every view as a dotted name."""
        if not self.views_path.is_dir():
            return []
        names = []
        for path in self.views_path.rglob("*" + EXTENSION):
            relative = path.relative_to(self.views_path)
            stem = str(relative)[: -len(EXTENSION)]
            names.append(stem.replace(os.sep, "."))
        return sorted(names)
