import json
import logging
import re
from typing import Any, Dict, List, Optional
from openai import AsyncOpenAI, OpenAIError

from travel_crm.config import Settings, settings as default_settings
from travel_crm.errors import ConfigurationError
from travel_crm.models.lead import (
    ExtractedLead,
    DESTINATION_NOT_SPECIFIED,
    NEW_LEAD_STATUS,
    PHONE_NOT_AVAILABLE,
    PRICE_NOT_DISCUSSED,
    UNKNOWN_NAME,
)
from travel_crm.services.chunking import detect_data_format

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a lead extraction expert. Return ONLY valid JSON arrays. No markdown, no explanations."

EXTRACTION_PROMPT = """You are an expert at extracting lead information from WhatsApp travel agency conversations (Arabic/English mixed).

{chunk_note}

{format_hint}

**CRITICAL RULES:**
1. Extract EVERY unique person who has a phone number mentioned OR is clearly making booking inquiries
2. {phone_rule}
3. Each person = 1 separate lead
4. If multiple destinations discussed, list them separated by " - "
5. Extract ALL prices mentioned for each person
6. Status is ALWAYS "New Lead"

**REQUIRED FIELDS:**
- name: Extract from conversation (WhatsApp contact name or mentioned name)
- phone_number: Extract if present (any format). If not available, use "Not available"
- destination: Cities/countries discussed (multiple: "Istanbul - Trabzon")
- status: ALWAYS "New Lead"
- price: All prices for this person's services. Format: "Hotel: 140€, Transport: 500TL". If none, use "Not discussed"
- services: (Optional) What was discussed

**CONVERSATION:**
{text}

Return ONLY valid JSON array:
[
  {{
    "name": "Name",
    "phone_number": "+90 XXX or Not available",
    "destination": "Cities",
    "status": "New Lead",
    "price": "Details or Not discussed",
    "services": "Hotels, Tours"
  }}
]

Empty array if no leads: []"""

FORMAT_HINTS = {
    "whatsapp": "The data below is an exported WhatsApp chat. Each message starts with a timestamp and the sender's contact name.",
    "csv-like": "The data below is tabular (comma separated rows). Every row is a potential lead. DO NOT skip any rows.",
    "structured": "The data below is free-form notes or a pasted list. Extract EVERY entry, DO NOT skip any.",
}

PHONE_OPTIONAL_RULE = "Phone numbers are preferred but not required if the customer name is clear"
PHONE_REQUIRED_RULE = "Phone number is REQUIRED (any format). NO PHONE NUMBER = SKIP THIS PERSON"

_FENCE_OPEN = re.compile(r"```json\n?")
_FENCE_CLOSE = re.compile(r"```\n?")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_PHONE_DIGITS = re.compile(r"\d{3,}")


def build_extraction_prompt(
    text: str,
    chunk_number: int = 1,
    total_chunks: int = 1,
    require_phone_number: bool = False,
) -> str:
    """
    Build the user prompt for one conversation chunk.

    Args:
        text: Chunk of conversation text
        chunk_number: 1-based position of the chunk
        total_chunks: Number of chunks in the whole conversation
        require_phone_number: Ask the model to skip people without a phone

    Returns:
        Prompt string
    """
    chunk_note = ""
    if total_chunks > 1:
        chunk_note = (
            f"NOTE: This is part {chunk_number} of {total_chunks} conversation chunks. "
            "Extract all leads from THIS chunk."
        )

    return EXTRACTION_PROMPT.format(
        chunk_note=chunk_note,
        format_hint=FORMAT_HINTS[detect_data_format(text)],
        phone_rule=PHONE_REQUIRED_RULE if require_phone_number else PHONE_OPTIONAL_RULE,
        text=text,
    )


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " - ".join(str(item).strip() for item in value if str(item).strip())
    return str(value).strip()


def has_valid_phone(phone: str) -> bool:
    return bool(phone) and phone != PHONE_NOT_AVAILABLE and bool(_PHONE_DIGITS.search(phone))


def normalize_lead(entry: Any, require_phone_number: bool = False) -> Optional[ExtractedLead]:
    """
    Validate one parsed entry and fill sentinels for missing fields.

    Returns None when the entry must be discarded: not an object, no usable
    name, or (when require_phone_number is set) no usable phone number.
    """
    if not isinstance(entry, dict):
        return None

    name = _as_text(entry.get("name"))
    if not name or name == UNKNOWN_NAME:
        return None

    phone = _as_text(entry.get("phone_number"))
    if require_phone_number and not has_valid_phone(phone):
        logger.debug("Skipping lead without phone: %s", name)
        return None

    services = _as_text(entry.get("services"))

    return ExtractedLead(
        name=name,
        phone_number=phone or PHONE_NOT_AVAILABLE,
        destination=_as_text(entry.get("destination")) or DESTINATION_NOT_SPECIFIED,
        status=NEW_LEAD_STATUS,
        price=_as_text(entry.get("price")) or PRICE_NOT_DISCUSSED,
        services=services or None,
    )


def parse_leads_payload(content: str) -> List[Any]:
    """
    Parse a completion into a list of raw lead entries.

    Strips Markdown code fences and, if the remainder is not valid JSON,
    falls back to the outermost [...] span.

    Raises:
        ValueError: when no JSON array can be recovered
    """
    cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", content)).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _JSON_ARRAY.search(cleaned)
        if not match:
            raise ValueError("No JSON array found in response")
        data = json.loads(match.group(0))

    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array, got {type(data).__name__}")
    return data


class LeadExtractor:
    """Turns conversation chunks into validated leads via the chat completions API."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_tokens: int = 2000,
        require_phone_number: bool = False,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.require_phone_number = require_phone_number

    def _messages(self, text: str, chunk_number: int, total_chunks: int) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": build_extraction_prompt(
                    text, chunk_number, total_chunks, self.require_phone_number
                ),
            },
        ]

    async def extract_leads_from_chunk(
        self,
        text: str,
        chunk_number: int = 1,
        total_chunks: int = 1,
    ) -> List[ExtractedLead]:
        """
        Extract leads from a single chunk.

        Provider errors and unparseable completions are logged and yield an
        empty list so one bad chunk never aborts the rest of the run.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=self._messages(text, chunk_number, total_chunks),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            logger.error("OpenAI API error (chunk %s): %s", chunk_number, e)
            return []

        content = ""
        if response.choices:
            content = (response.choices[0].message.content or "").strip()

        try:
            entries = parse_leads_payload(content)
        except ValueError as e:
            logger.error("Error parsing chunk %s: %s", chunk_number, e)
            logger.debug("Raw content (first 1000 chars): %s", content[:1000])
            return []

        leads = []
        for entry in entries:
            lead = normalize_lead(entry, self.require_phone_number)
            if lead is not None:
                leads.append(lead)

        logger.info("Chunk %s: extracted %s leads (%s discarded)", chunk_number, len(leads), len(entries) - len(leads))
        return leads


def build_extraction_client(config: Optional[Settings] = None) -> LeadExtractor:
    """
    Build a LeadExtractor from settings.

    Raises:
        ConfigurationError: if OPENAI_API_KEY is not set
    """
    config = config or default_settings
    if not config.OPENAI_API_KEY:
        raise ConfigurationError("OPENAI_API_KEY is not configured")

    return LeadExtractor(
        AsyncOpenAI(api_key=config.OPENAI_API_KEY),
        model=config.OPENAI_MODEL,
        temperature=config.OPENAI_TEMPERATURE,
        max_tokens=config.OPENAI_MAX_TOKENS,
        require_phone_number=config.REQUIRE_PHONE_NUMBER,
    )
