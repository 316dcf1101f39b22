from .db import Base, get_engine
from .import_batch import ImportBatch
from .lead import ExtractedLead

def create_all():
    Base.metadata.create_all(bind=get_engine())
