"""Rich console with ASCII fallback and Actions annotation helpers."""
from typing import Any

from rich.console import Console
from rich.markup import escape

from .logger import format_annotation, is_utf8_capable, sanitize_for_terminal


class SafeConsole(Console):
    """Console that sanitizes Unicode on non-UTF-8 terminals.

    Annotations are written without Rich markup or wrapping so the Actions
    runner can parse them.
    """

    def __init__(self, *args, **kwargs):
        self._needs_sanitization = not is_utf8_capable()
        if self._needs_sanitization:
            kwargs['legacy_windows'] = True
        super().__init__(*args, **kwargs)

    def print(self, *objects: Any, **kwargs) -> None:
        if self._needs_sanitization:
            objects = tuple(
                sanitize_for_terminal(obj) if isinstance(obj, str) else obj
                for obj in objects
            )
        super().print(*objects, **kwargs)

    def annotate(self, level: str, message: str) -> None:
        """Emit a workflow annotation on a single unwrapped line."""
        super().print(
            format_annotation(level, sanitize_for_terminal(message)),
            markup=False,
            highlight=False,
            soft_wrap=True,
        )

    def warning(self, message: str) -> None:
        self.annotate('warning', message)

    def error(self, message: str) -> None:
        """Print a fatal error in red and as an annotation."""
        self.print(f"[bold red]✗ {escape(message)}[/bold red]")
        self.annotate('error', message)
