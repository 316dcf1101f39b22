from typing import Literal, Optional
from pydantic import BaseModel

NEW_LEAD_STATUS = "New Lead"
PHONE_NOT_AVAILABLE = "Not available"
DESTINATION_NOT_SPECIFIED = "Not specified"
PRICE_NOT_DISCUSSED = "Not discussed"
UNKNOWN_NAME = "Unknown"


class ExtractedLead(BaseModel):
    name: str
    phone_number: str = PHONE_NOT_AVAILABLE
    destination: str = DESTINATION_NOT_SPECIFIED  # multiple joined with " - "
    status: Literal["New Lead"] = NEW_LEAD_STATUS
    price: str = PRICE_NOT_DISCUSSED  # free text, may mix currencies
    services: Optional[str] = None

    def to_json(self) -> dict:
        return self.model_dump(exclude_none=True)
