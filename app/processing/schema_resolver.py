"""
Discovers which database properties the bridge can populate.

Property names are matched case- and punctuation-insensitively against fixed candidate
lists, so "Chat ID", "chat_id" and "Telegram Chat-ID" all resolve. A missing candidate is
not an error; the corresponding value is simply left off the page.
"""
import re
from typing import Any, Dict, Iterable, Optional
from app.models import TelegramNotionSchema

CHAT_ID_CANDIDATES = ("Chat ID", "Telegram Chat ID")
TOPIC_ID_CANDIDATES = ("Topic ID", "Telegram Topic ID", "Thread ID", "Message Thread ID")
MESSAGE_ID_CANDIDATES = ("Message ID", "Telegram Message ID")
UPDATE_ID_CANDIDATES = ("Update ID", "Telegram Update ID")

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]")
_NOT_STARTED = re.compile(r"not\s*started", re.IGNORECASE)


def normalize_name(name: str) -> str:
    return _NON_ALPHANUMERIC.sub("", name.lower())


def find_property_name(
    properties: Dict[str, Any],
    property_type: str,
    candidates: Iterable[str],
) -> Optional[str]:
    """
    Finds the first property of the given type whose name matches one of the candidates.
    Args:
        properties: The database property map keyed by property name.
        property_type: The Notion property type to match, e.g. "number".
        candidates: Acceptable property names.
    Returns:
        The property name as it appears in the schema, or None.
    """
    wanted = {normalize_name(candidate) for candidate in candidates}
    for name, prop in properties.items():
        if not isinstance(prop, dict) or prop.get("type") != property_type:
            continue
        if normalize_name(name) in wanted:
            return name
    return None


def _status_default_option(prop: Dict[str, Any]) -> Optional[str]:
    options = (prop.get("status") or {}).get("options") or []
    names = [option.get("name") for option in options if isinstance(option, dict) and option.get("name")]
    for name in names:
        if _NOT_STARTED.search(name):
            return name
    return names[0] if names else None


def resolve_schema(
    properties: Any,
    data_source_id: Optional[str] = None,
) -> Optional[TelegramNotionSchema]:
    """
    Resolves the property names used for page creation and duplicate detection.
    Args:
        properties: The property map returned by Notion.
        data_source_id: The data source the properties were read from, if any.
    Returns:
        The resolved schema, or None when no usable property map was supplied.
    """
    if not isinstance(properties, dict):
        return None
    title_prop = "Name"
    status_prop = None
    status_not_started = None
    for name, prop in properties.items():
        if not isinstance(prop, dict):
            continue
        prop_type = prop.get("type")
        if prop_type == "title":
            title_prop = name
        elif prop_type == "status":
            status_prop = name
            status_not_started = _status_default_option(prop)
    return TelegramNotionSchema(
        title_prop=title_prop,
        chat_id_prop=find_property_name(properties, "number", CHAT_ID_CANDIDATES),
        topic_id_prop=find_property_name(properties, "number", TOPIC_ID_CANDIDATES),
        message_id_prop=find_property_name(properties, "number", MESSAGE_ID_CANDIDATES),
        update_id_prop=find_property_name(properties, "number", UPDATE_ID_CANDIDATES),
        status_prop=status_prop,
        status_not_started=status_not_started,
        data_source_id=data_source_id,
    )
