"""
Lead deduplication.

Key strategies:
- phone_number: one lead per phone number. Every lead carrying the
  "Not available" sentinel shares one key, so only one of them survives.
- name_and_phone: one lead per (normalized name, phone number) pair,
  which keeps distinct people that have no phone number.
"""

from typing import Callable, Dict, Hashable, Iterable, List

from travel_crm.models.lead import ExtractedLead

DedupeKey = Callable[[ExtractedLead], Hashable]

KEY_FUNCTIONS: Dict[str, DedupeKey] = {
    "phone_number": lambda lead: lead.phone_number,
    "name_and_phone": lambda lead: (" ".join(lead.name.lower().split()), lead.phone_number),
}


def dedupe_leads(leads: Iterable[ExtractedLead], key: str = "phone_number") -> List[ExtractedLead]:
    """
    Collapse leads sharing the same key.

    The last lead seen for a key wins; it takes the position where that key
    first appeared.

    Args:
        leads: Leads in extraction order
        key: "phone_number" or "name_and_phone"

    Returns:
        list: Unique leads
    """
    try:
        key_fn = KEY_FUNCTIONS[key]
    except KeyError:
        raise ValueError(f"Unknown dedupe key: {key}") from None

    unique: Dict[Hashable, ExtractedLead] = {}
    for lead in leads:
        unique[key_fn(lead)] = lead
    return list(unique.values())
