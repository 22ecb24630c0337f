"""
Localisation overlay.

A localisable record keeps its translations in one reserved field, `i18n`,
holding a JSON object of language code -> {field name: localised value}. For
display in a language, the matching slice is laid over the record's field map.
The overlay only changes the map it is given; it never writes translations
back to the store.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, MutableMapping

from rowbinder.utils.logging import get_logger

I18N_FIELD = "i18n"
DECODED_FIELD = "_i18n_"

LocalizationMap = Dict[str, Dict[str, Any]]

log = get_logger(__name__)


def decode_localisations(raw: Any) -> LocalizationMap:
    """
    Decode the content of an `i18n` field.

    Malformed or non-object payloads decode to an empty map.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        value: Any = raw
    else:
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            log.debug("Ignoring undecodable i18n payload")
            return {}
    if not isinstance(value, dict):
        return {}
    return {str(language): dict(fields) for language, fields in value.items() if isinstance(fields, dict)}


def translate_data(data: MutableMapping[str, Any], lang_code: str) -> MutableMapping[str, Any]:
    """
    Overlay the `lang_code` translations onto `data` in place.

    The decoded map is kept under `_i18n_` so repeated calls decode once.
    An empty or unknown language leaves the base values untouched.
    """
    if DECODED_FIELD not in data and I18N_FIELD in data:
        data[DECODED_FIELD] = decode_localisations(data[I18N_FIELD])
    localisations = data.get(DECODED_FIELD) or {}
    if lang_code and lang_code in localisations:
        for field_name, value in localisations[lang_code].items():
            data[field_name] = value
    return data


def localisation_digest(localisations: LocalizationMap) -> List[Dict[str, str]]:
    """
    Split each language's fields into translated and blank ones.

    Returns one entry per language with space-separated field names, e.g.
    {"language": "de", "translated": "title", "untranslated": "summary"}.
    """
    digest = []
    for language, fields in localisations.items():
        translated = [name for name, value in fields.items() if str(value if value is not None else "").strip()]
        untranslated = [name for name in fields if name not in translated]
        digest.append(
            {
                "language": language,
                "translated": " ".join(translated),
                "untranslated": " ".join(untranslated),
            }
        )
    return digest


__all__ = [
    "I18N_FIELD",
    "DECODED_FIELD",
    "LocalizationMap",
    "decode_localisations",
    "localisation_digest",
    "translate_data",
]
