from typing import Callable

from travel_crm.services.batch_store import BatchStore, build_batch_store
from travel_crm.services.openai_service import LeadExtractor, build_extraction_client

# Factories are resolved inside the handlers so request validation (400)
# runs before configuration checks (500).

def get_extraction_client_factory() -> Callable[[], LeadExtractor]:
    return build_extraction_client


def get_batch_store_factory() -> Callable[[], BatchStore]:
    return build_batch_store
