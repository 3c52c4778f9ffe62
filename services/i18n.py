"""Per-locale message bundles and translation helpers."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from config import SUPPORTED_LOCALES, DEFAULT_LOCALE

LOCALES_DIR = Path(__file__).parent / "locales"

_bundles: Dict[str, Dict[str, Any]] = {}


def load_bundle(locale: str) -> Dict[str, Any]:
    """Load (and cache) the message bundle for a locale."""
    if locale not in _bundles:
        path = LOCALES_DIR / f"{locale}.json"
        with open(path, encoding="utf-8") as f:
            _bundles[locale] = json.load(f)
    return _bundles[locale]


def _normalize(candidate: Optional[str]) -> Optional[str]:
    """Reduce a locale tag or Accept-Language header to a supported locale."""
    if not candidate:
        return None
    for part in candidate.split(","):
        tag = part.split(";")[0].strip().lower()
        base = tag.replace("_", "-").split("-")[0]
        if base in SUPPORTED_LOCALES:
            return base
    return None


def resolve_locale(*candidates: Optional[str]) -> str:
    """Return the first supported locale among candidates, else the default."""
    for candidate in candidates:
        locale = _normalize(candidate)
        if locale:
            return locale
    return DEFAULT_LOCALE


def _lookup(bundle: Dict[str, Any], key: str) -> Optional[str]:
    node: Any = bundle
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


class Translator:
    """Translation function bound to one locale."""

    def __init__(self, locale: str):
        self.locale = resolve_locale(locale)

    def t(self, key: str, **params: Any) -> str:
        """Translate a dotted key, falling back to the default locale, then to the key."""
        text = _lookup(load_bundle(self.locale), key)
        if text is None and self.locale != DEFAULT_LOCALE:
            text = _lookup(load_bundle(DEFAULT_LOCALE), key)
        if text is None:
            return key
        for name, value in params.items():
            text = text.replace("{" + name + "}", str(value))
        return text


def get_translator(locale: Optional[str]) -> Translator:
    return Translator(resolve_locale(locale))
