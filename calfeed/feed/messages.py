from __future__ import annotations

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "EC_EDEV_EVENT": "Event",
        "EC_T_EDIT": "Edit",
        "EC_T_DELETE": "Delete",
        "EC_DEFAULT_EVENT_NAME": "New event",
        "EC_LF_ADD_COMMENT_SOURCE_ERROR": "Could not add a comment to the event.",
        "EC_LF_COMMENT_NOTIFY": 'Commented on the event "#EVENT_TITLE#": #COMMENT_TEXT#',
        "EC_LF_COMMENT_NOTIFY_EDIT": 'Edited a comment on the event "#EVENT_TITLE#": #COMMENT_TEXT#',
    },
    "de": {
        "EC_EDEV_EVENT": "Termin",
        "EC_T_EDIT": "Bearbeiten",
        "EC_T_DELETE": "Löschen",
        "EC_DEFAULT_EVENT_NAME": "Neuer Termin",
        "EC_LF_ADD_COMMENT_SOURCE_ERROR": "Der Kommentar konnte nicht zum Termin hinzugefügt werden.",
        "EC_LF_COMMENT_NOTIFY": 'Hat den Termin "#EVENT_TITLE#" kommentiert: #COMMENT_TEXT#',
        "EC_LF_COMMENT_NOTIFY_EDIT": 'Hat einen Kommentar zum Termin "#EVENT_TITLE#" bearbeitet: #COMMENT_TEXT#',
    },
}

DEFAULT_LANGUAGE = "en"


def get_message(key: str, language_id: str = DEFAULT_LANGUAGE) -> str:
    """Localized string for ``key``; falls back to English, then to the key itself."""

    catalog = MESSAGES.get(language_id) or MESSAGES[DEFAULT_LANGUAGE]
    if key in catalog:
        return catalog[key]
    return MESSAGES[DEFAULT_LANGUAGE].get(key, key)
