import uvicorn
from .config import settings  # ensures .env is loaded

if __name__ == "__main__":
    uvicorn.run(
        "travel_crm.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=(settings.ENV == "development"),
        log_level=settings.LOG_LEVEL.lower(),
    )
