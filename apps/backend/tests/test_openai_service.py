import httpx
import pytest
from openai import APIConnectionError

from travel_crm.config import Settings
from travel_crm.errors import ConfigurationError
from travel_crm.services.openai_service import (
    LeadExtractor,
    SYSTEM_PROMPT,
    build_extraction_client,
    build_extraction_prompt,
    normalize_lead,
    parse_leads_payload,
)

from conftest import FakeOpenAI, leads_json

ALI = {"name": "Ali", "phone_number": "+90 555 111", "destination": "Istanbul", "price": "200€"}


async def test_well_formed_response_yields_new_lead() -> None:
    client = FakeOpenAI(lambda prompt: leads_json(ALI))
    extractor = LeadExtractor(client)

    leads = await extractor.extract_leads_from_chunk("[12/01/2025, 10:00] Ali: Istanbul hotel?")

    assert len(leads) == 1
    lead = leads[0]
    assert lead.status == "New Lead"
    assert lead.services is None
    assert lead.to_json() == {
        "name": "Ali",
        "phone_number": "+90 555 111",
        "destination": "Istanbul",
        "status": "New Lead",
        "price": "200€",
    }


async def test_request_uses_system_prompt_and_sampling_settings() -> None:
    client = FakeOpenAI(lambda prompt: "[]")
    extractor = LeadExtractor(client, model="gpt-4o-mini", temperature=0.2, max_tokens=2000)

    await extractor.extract_leads_from_chunk("hello", 2, 5)

    call = client.completions.calls[0]
    assert call["model"] == "gpt-4o-mini"
    assert call["temperature"] == 0.2
    assert call["max_tokens"] == 2000
    assert call["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert "part 2 of 5" in call["messages"][1]["content"]


async def test_markdown_fenced_response_is_parsed() -> None:
    fenced = "```json\n" + leads_json(ALI) + "\n```"
    extractor = LeadExtractor(FakeOpenAI(lambda prompt: fenced))

    leads = await extractor.extract_leads_from_chunk("text")

    assert [lead.name for lead in leads] == ["Ali"]


async def test_invalid_json_returns_empty_list() -> None:
    extractor = LeadExtractor(FakeOpenAI(lambda prompt: "Sorry, I cannot help with that."))

    assert await extractor.extract_leads_from_chunk("text") == []


async def test_non_array_json_returns_empty_list() -> None:
    extractor = LeadExtractor(FakeOpenAI(lambda prompt: '{"name": "Ali"}'))

    assert await extractor.extract_leads_from_chunk("text") == []


async def test_provider_error_returns_empty_list() -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    extractor = LeadExtractor(FakeOpenAI(lambda prompt: APIConnectionError(request=request)))

    assert await extractor.extract_leads_from_chunk("text") == []


async def test_missing_fields_get_sentinels_and_invalid_names_are_dropped() -> None:
    payload = leads_json(
        {"name": "Sara", "status": "Booked"},
        {"name": "Unknown", "phone_number": "+90 555 222"},
        {"name": "   ", "phone_number": "+90 555 333"},
        "not an object",
    )
    extractor = LeadExtractor(FakeOpenAI(lambda prompt: payload))

    leads = await extractor.extract_leads_from_chunk("text")

    assert len(leads) == 1
    assert leads[0].to_json() == {
        "name": "Sara",
        "phone_number": "Not available",
        "destination": "Not specified",
        "status": "New Lead",
        "price": "Not discussed",
    }


async def test_require_phone_number_drops_leads_without_usable_phone() -> None:
    payload = leads_json(
        ALI,
        {"name": "Sara", "phone_number": "Not available"},
        {"name": "Omar", "phone_number": "call me"},
        {"name": "Lina"},
    )
    client = FakeOpenAI(lambda prompt: payload)

    lenient = await LeadExtractor(client).extract_leads_from_chunk("text")
    strict = await LeadExtractor(client, require_phone_number=True).extract_leads_from_chunk("text")

    assert [lead.name for lead in lenient] == ["Ali", "Sara", "Omar", "Lina"]
    assert [lead.name for lead in strict] == ["Ali"]


def test_parse_leads_payload_recovers_array_from_surrounding_prose() -> None:
    content = "Here are the leads:\n" + leads_json(ALI) + "\nLet me know!"

    assert parse_leads_payload(content) == [ALI]


def test_parse_leads_payload_rejects_text_without_array() -> None:
    with pytest.raises(ValueError):
        parse_leads_payload("no leads here")


def test_normalize_lead_joins_destination_list_and_stringifies_price() -> None:
    lead = normalize_lead({"name": "Ali", "destination": ["Istanbul", "Trabzon"], "price": 400})

    assert lead is not None
    assert lead.destination == "Istanbul - Trabzon"
    assert lead.price == "400"


def test_prompt_mentions_chunk_only_when_split() -> None:
    single = build_extraction_prompt("Ali wants Bursa", 1, 1)
    split = build_extraction_prompt("Ali wants Bursa", 1, 3)

    assert "part 1 of 3" not in single
    assert "part 1 of 3" in split
    assert "Ali wants Bursa" in single


def test_prompt_phone_rule_follows_toggle() -> None:
    assert "NO PHONE NUMBER = SKIP" in build_extraction_prompt("x", require_phone_number=True)
    assert "preferred but not required" in build_extraction_prompt("x")


def test_build_extraction_client_requires_api_key() -> None:
    with pytest.raises(ConfigurationError):
        build_extraction_client(Settings(OPENAI_API_KEY=None))


def test_build_extraction_client_applies_settings() -> None:
    config = Settings(OPENAI_API_KEY="sk-test", OPENAI_MODEL="gpt-4o", REQUIRE_PHONE_NUMBER=True)

    extractor = build_extraction_client(config)

    assert extractor.model == "gpt-4o"
    assert extractor.require_phone_number is True
