from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from .constants import DEFAULT_LOCALE

log = logging.getLogger("guildkit.i18n")

Catalog = Mapping[str, Mapping[str, str]]


class Localizer:
    """Keyed string templates, extended by each cog on load.

    Templates use ``str.format`` placeholders. Later registrations win over
    earlier ones for the same key; unhandling restores the previous layer.
    """

    def __init__(self, default_locale: str = DEFAULT_LOCALE) -> None:
        self.default_locale = default_locale
        self._layers: list[tuple[int, Catalog]] = []
        self._next_handle = 0
        self._missing_reported: set[tuple[str, str]] = set()

    def extend(self, catalog: Catalog) -> Callable[[], None]:
        """Register ``catalog``; returns a callable that removes it again."""
        handle = self._next_handle
        self._next_handle += 1
        self._layers.append((handle, catalog))

        def unhandle() -> None:
            self._layers = [(h, c) for h, c in self._layers if h != handle]

        return unhandle

    def locales(self) -> set[str]:
        found: set[str] = set()
        for _, catalog in self._layers:
            found.update(catalog.keys())
        return found

    def _lookup(self, locale: str, key: str) -> str | None:
        for _, catalog in reversed(self._layers):
            strings = catalog.get(locale)
            if strings and key in strings:
                return strings[key]
        return None

    def localize(self, key: str, locale: str | None = None, **params: Any) -> str:
        template = None
        if locale and locale != self.default_locale:
            template = self._lookup(locale, key)
        if template is None:
            template = self._lookup(self.default_locale, key)
        if template is None:
            marker = (locale or self.default_locale, key)
            if marker not in self._missing_reported:
                self._missing_reported.add(marker)
                log.warning("Missing string %s for locale %s", key, marker[0])
            return key
        if not params:
            return template
        try:
            return template.format(**params)
        except (KeyError, IndexError, ValueError):
            log.warning("Failed to format string %s with %s", key, sorted(params))
            return template

    def for_guild(self, guild: Any) -> str:
        """Locale to use for a guild, falling back to the default one."""
        preferred = getattr(guild, "preferred_locale", None)
        if preferred is None:
            return self.default_locale
        value = str(getattr(preferred, "value", preferred))
        return value if value in self.locales() else self.default_locale
