"""Per-field merge of stage outputs into a stored property record."""

import copy
import logging
from typing import Any, Dict, Optional

from models.property import ADDRESS_ENRICHMENT_FIELDS, ENRICHMENT_FIELDS

logger = logging.getLogger(__name__)


def merge_property(current: Optional[Dict[str, Any]], update: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge a property dict produced by a stage into the stored one.

    Primary-scrape fields are write-once: they are only filled when the
    stored value is missing. Enrichment fields (coordinates, station
    lists, door number, street name) take the new value whenever it is
    not None, so a late stage can back-fill but never erase.
    """
    if not current:
        return copy.deepcopy(update)

    merged = copy.deepcopy(current)
    for key, value in update.items():
        if key == "address" and isinstance(value, dict):
            address = dict(merged.get("address") or {})
            for field_name, field_value in value.items():
                if field_value is None:
                    continue
                if field_name in ADDRESS_ENRICHMENT_FIELDS or address.get(field_name) in (None, ""):
                    address[field_name] = field_value
            merged["address"] = address
        elif key in ENRICHMENT_FIELDS:
            if value is not None:
                merged[key] = copy.deepcopy(value)
        elif merged.get(key) is None and value is not None:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_data(current: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge a stage's contribution into a record's ``data`` section.

    Sections written by sibling stages are left untouched; a section in
    ``update`` replaces the stored one only when it is not None.
    """
    merged = copy.deepcopy(current)
    for section, value in update.items():
        if section == "property":
            merged["property"] = merge_property(merged.get("property"), value)
        elif value is not None:
            merged[section] = copy.deepcopy(value)
    return merged


def apply_stage_update(store, record_id: str, update: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Read the current record, merge ``update`` into its data and write it back.

    Returns the merged record, or None if the record no longer exists.
    The read and write happen without an intervening await, so stages
    finishing on the same event loop cannot interleave inside a merge.
    """
    record = store.get(record_id)
    if record is None:
        logger.warning(f"Record {record_id} vanished before merge; dropping update")
        return None
    record["data"] = merge_data(record.get("data") or {}, update)
    return store.upsert(record_id, record)
