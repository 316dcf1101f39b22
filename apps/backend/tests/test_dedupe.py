import pytest

from travel_crm.models.lead import ExtractedLead
from travel_crm.services.dedupe import dedupe_leads


def lead(name: str, phone: str = "Not available", **extra) -> ExtractedLead:
    return ExtractedLead(name=name, phone_number=phone, **extra)


def test_last_lead_wins_for_shared_phone_number() -> None:
    leads = [
        lead("Ali", "+90 555 111", destination="Istanbul"),
        lead("Sara", "+90 555 222"),
        lead("Ali K.", "+90 555 111", destination="Trabzon"),
    ]

    unique = dedupe_leads(leads)

    assert [(item.name, item.destination) for item in unique] == [
        ("Ali K.", "Trabzon"),
        ("Sara", "Not specified"),
    ]


def test_missing_phone_numbers_collapse_into_one() -> None:
    unique = dedupe_leads([lead("Ali"), lead("Sara"), lead("Omar")])

    assert [item.name for item in unique] == ["Omar"]


def test_name_and_phone_key_keeps_distinct_people_without_phone() -> None:
    leads = [lead("Ali"), lead("Sara"), lead("  ali "), lead("Sara", "+90 555 222")]

    unique = dedupe_leads(leads, key="name_and_phone")

    assert [item.name for item in unique] == ["  ali ", "Sara", "Sara"]


def test_dedupe_is_idempotent_and_bounded_by_distinct_keys() -> None:
    leads = [
        lead("Ali", "+90 555 111"),
        lead("Sara"),
        lead("Omar", "+90 555 111"),
        lead("Lina"),
        lead("Mona", "+90 555 333"),
    ]

    once = dedupe_leads(leads)

    assert dedupe_leads(once) == once
    assert len(once) <= len({item.phone_number for item in leads})


def test_unknown_key_is_rejected() -> None:
    with pytest.raises(ValueError):
        dedupe_leads([], key="email")
