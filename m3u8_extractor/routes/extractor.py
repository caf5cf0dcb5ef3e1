import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from m3u8_extractor.extractors.base import NetworkError
from m3u8_extractor.extractors.player import PlayerPageExtractor
from m3u8_extractor.schemas import ExtractionRequest

extractor_router = APIRouter()
logger = logging.getLogger(__name__)


async def get_player_extractor() -> PlayerPageExtractor:
    return PlayerPageExtractor()


@extractor_router.get("/extract")
async def extract_url(
    extractor: Annotated[PlayerPageExtractor, Depends(get_player_extractor)],
    url: Annotated[Optional[str], Query(description="The URL of the video player page.")] = None,
):
    """Extract the m3u8 manifest URL from a video player page."""
    if not url:
        return JSONResponse({"error": "Please provide a url parameter"}, status_code=400)

    try:
        extraction_request = ExtractionRequest(player_url=url)
    except ValidationError:
        return JSONResponse({"error": "Invalid URL"}, status_code=400)

    try:
        result = await extractor.extract(extraction_request.player_url)
    except NetworkError as e:
        logger.error(f"Extraction failed: {str(e)}")
        return JSONResponse({"success": False, "error": e.message}, status_code=500)
    except Exception as e:
        logger.exception(f"Extraction failed: {str(e)}")
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)

    if result.found:
        return {"success": True, "url": result.manifest_url, "time": result.elapsed_label}

    return JSONResponse(
        {"success": False, "error": "Link not found", "time": result.elapsed_label},
        status_code=404,
    )
