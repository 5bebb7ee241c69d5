"""In-memory catalog of loaded template packs."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path

from pmp.errors import TemplateNotFoundError
from pmp.packs.base import PluginSpec, Template, TemplatePack
from pmp.packs.loader import get_pack_search_paths, load_packs


class TemplateRegistry:
    """Read-only lookup over a set of packs.

    Packs are listed in id order, templates in the order their pack declares
    them. Loading is all-or-nothing: a registry never holds a malformed pack.
    """

    def __init__(self, packs: Mapping[str, TemplatePack]) -> None:
        self._packs = dict(sorted(packs.items()))

    @classmethod
    def from_paths(cls, paths: Iterable[Path]) -> TemplateRegistry:
        """Load every pack under the given roots. Later roots win on id clashes."""
        return cls(load_packs(paths))

    @classmethod
    def discover(cls, extra_paths: Iterable[str | Path] = ()) -> TemplateRegistry:
        """Load packs from the default search paths plus configured extras."""
        return cls.from_paths(get_pack_search_paths(extra_paths))

    def list_packs(self) -> tuple[TemplatePack, ...]:
        return tuple(self._packs.values())

    def get_pack(self, pack_id: str) -> TemplatePack:
        pack = self._packs.get(pack_id)
        if pack is None:
            raise TemplateNotFoundError(pack_id)
        return pack

    def get_template(self, pack_id: str, template_id: str) -> Template:
        template = self.get_pack(pack_id).get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(pack_id, template_id)
        return template

    def resolve(self, qualified_name: str) -> Template:
        """Look up a template by ``PACK/TEMPLATE``."""
        pack_id, sep, template_id = qualified_name.partition("/")
        if not sep or not pack_id or not template_id:
            raise TemplateNotFoundError(qualified_name)
        return self.get_template(pack_id, template_id)

    def get_plugin(self, pack_id: str, name: str) -> PluginSpec | None:
        return self.get_pack(pack_id).get_plugin(name)

    def all_templates(self) -> list[Template]:
        return [t for pack in self._packs.values() for t in pack.templates]
