# styles.py

"""
Style-resolution collaborator.

Commands never compute class names themselves: they ask a StyleResolver. Hosts plug
in their own style compiler; StaticStyleResolver is a table-driven implementation
for tests, previews and hosts without a compiler.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union, runtime_checkable

logger = logging.getLogger(__name__)

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")


class StyleResolverError(Exception):
    pass


@runtime_checkable
class StyleResolver(Protocol):
    async def get_class_name_by_style_key(self, key: str) -> Optional[str]:
        ...

    def get_class_name_by_color_key(self, key: str) -> Optional[str]:
        ...

    async def get_class_names_for_style_map(self, styles: Mapping[str, Any]) -> Optional[str]:
        ...


def class_name_for_key(key: str) -> str:
    """``utils/text/alignCenter`` -> ``utils-text-align-center``."""
    return _SEPARATOR_RE.sub("-", _CAMEL_RE.sub("-", key).lower()).strip("-")


class StaticStyleResolver:
    """
    Table-driven resolver.

    Keys without an explicit entry fall back to a class name derived from the key.
    Viewport maps (``{"xs": key, "md": key}``) produce one class per viewport, the
    ``xs`` class without suffix.
    """

    def __init__(
        self,
        styles: Optional[Mapping[str, str]] = None,
        colors: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.styles: Dict[str, str] = dict(styles or {})
        self.colors: Dict[str, str] = dict(colors or {})

    def add_style(self, key: str, class_name: str) -> None:
        self.styles[key] = class_name

    def add_color(self, key: str, class_name: str) -> None:
        self.colors[key] = class_name

    def list_styles(self) -> List[str]:
        return list(self.styles.keys())

    def _style_class(self, key: str) -> str:
        return self.styles.get(key) or class_name_for_key(key)

    async def get_class_name_by_style_key(self, key: str) -> Optional[str]:
        if not key:
            return None
        return self._style_class(key)

    def get_class_name_by_color_key(self, key: str) -> Optional[str]:
        if not key:
            return None
        return self.colors.get(key) or class_name_for_key(key)

    async def get_class_names_for_style_map(self, styles: Mapping[str, Any]) -> Optional[str]:
        classes: List[str] = []
        for category, value in styles.items():
            if isinstance(value, str):
                classes.append(self._style_class(value))
            elif isinstance(value, Mapping):
                for viewport, key in value.items():
                    if not isinstance(key, str):
                        continue
                    name = self._style_class(key)
                    classes.append(name if viewport == "xs" else f"{name}-{viewport}")
            else:
                logger.debug("Ignoring style category %r with value %r", category, value)
        return " ".join(classes) or None

    def export_styles(self) -> str:
        return json.dumps({"styles": self.styles, "colors": self.colors}, ensure_ascii=False, indent=2)

    @classmethod
    def import_styles(cls, data: Union[str, Mapping[str, Any]]) -> StaticStyleResolver:
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise StyleResolverError(f"Invalid style table JSON: {e}") from e
        if not isinstance(data, Mapping):
            raise StyleResolverError("Expected dict for import_styles")
        styles = data.get("styles", {})
        colors = data.get("colors", {})
        if not isinstance(styles, Mapping) or not isinstance(colors, Mapping):
            raise StyleResolverError("'styles' and 'colors' must be objects")
        return cls(styles, colors)
