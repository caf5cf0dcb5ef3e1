import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from starlette.middleware.cors import CORSMiddleware

from m3u8_extractor.configs import settings
from m3u8_extractor.routes import extractor_router
from m3u8_extractor.utils.sandbox import shutdown_sandbox_runtime

logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await shutdown_sandbox_runtime()


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", response_class=PlainTextResponse)
@app.get("/api", response_class=PlainTextResponse)
async def index():
    return "m3u8 extractor is ready. Use /extract?url=YOUR_URL"


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# Serverless hosts may forward requests with or without the /api prefix.
app.include_router(extractor_router, tags=["extractors"])
app.include_router(extractor_router, prefix="/api", tags=["extractors"])


def run():
    import uvicorn

    logger.info(f"Server is running on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
