"""Named prompt templates with ``{{param}}`` placeholders.

Templates live as files in a directory (``<id>.st``, ``<id>.txt`` or
``<id>.md``) or are given inline. Rendering substitutes every placeholder
from the bound parameters; an unbound placeholder is an error rather than
being left in the prompt.
"""

import re
from pathlib import Path
from typing import Any, Mapping, Optional

from ..errors import TemplateError

TEMPLATE_EXTENSIONS = (".st", ".txt", ".md")

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_.-]*)\s*\}\}")


def render_template(text: str, params: Mapping[str, Any], template_id: str = "<inline>") -> str:
    """Substitute ``{{name}}`` placeholders from ``params``."""
    missing = sorted({m.group(1) for m in _PLACEHOLDER.finditer(text)} - set(params))
    if missing:
        raise TemplateError(
            f"Template '{template_id}' is missing parameter(s): {', '.join(missing)}"
        )
    return _PLACEHOLDER.sub(lambda m: str(params[m.group(1)]), text)


def placeholders(text: str) -> list[str]:
    """Placeholder names in order of first appearance."""
    seen: list[str] = []
    for match in _PLACEHOLDER.finditer(text):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen


class TemplateStore:
    """Resolve template ids to text, from inline definitions then a directory."""

    def __init__(
        self,
        directory: Optional[Path] = None,
        inline: Optional[Mapping[str, str]] = None,
    ):
        self.directory = Path(directory).expanduser() if directory else None
        self._inline = dict(inline or {})
        self._cache: dict[str, str] = {}

    def available(self) -> list[str]:
        """All template ids this store can resolve."""
        ids = set(self._inline)
        if self.directory and self.directory.is_dir():
            for path in self.directory.iterdir():
                if path.is_file() and path.suffix in TEMPLATE_EXTENSIONS:
                    ids.add(path.stem)
        return sorted(ids)

    def get(self, template_id: str) -> str:
        """Return the raw template text.

        Raises:
            TemplateError: no template with that id.
        """
        if template_id in self._inline:
            return self._inline[template_id]
        if template_id in self._cache:
            return self._cache[template_id]

        path = self._find(template_id)
        if path is None:
            raise TemplateError(f"Unknown prompt template: {template_id}")
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise TemplateError(f"Cannot read template {path}: {e}") from e

        self._cache[template_id] = text
        return text

    def render(self, template_id: str, params: Optional[Mapping[str, Any]] = None) -> str:
        return render_template(self.get(template_id), params or {}, template_id)

    def _find(self, template_id: str) -> Optional[Path]:
        if not self.directory or "/" in template_id or "\\" in template_id:
            return None
        candidate = self.directory / template_id
        if candidate.suffix in TEMPLATE_EXTENSIONS and candidate.is_file():
            return candidate
        for extension in TEMPLATE_EXTENSIONS:
            candidate = self.directory / f"{template_id}{extension}"
            if candidate.is_file():
                return candidate
        return None
