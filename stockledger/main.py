from prometheus_fastapi_instrumentator import Instrumentator

from stockledger import app
from stockledger.core.config import settings
from stockledger.core.logging import configure_logging

configure_logging()

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("stockledger.main:app", host=settings.HOST, port=settings.PORT)
