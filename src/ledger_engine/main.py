from fastapi import FastAPI

from ledger_engine.api.users import router as users_router
from ledger_engine.config import get_settings
from ledger_engine.logging_config import configure_logging


settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title=settings.app_title)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


app.include_router(users_router)
