import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from schedule_call.api.v1.scheduling import router as scheduling_router
from schedule_call.core.config import settings
from schedule_call.wiring.dependencies import close_calendar


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("session_id", "day", "slot", "event_id", "status", "error"):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_calendar()


app = FastAPI(title="Schedule a Call", version="1.0.0", lifespan=lifespan)

app.include_router(scheduling_router, prefix="/api/v1/scheduling", tags=["scheduling"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
