from __future__ import annotations

import asyncio
import io
from enum import Enum

import httpx
from PIL import Image, UnidentifiedImageError

from ..http_client import HttpClientManager
from ..logging_config import get_logger

logger = get_logger(__name__)


class ImageCheck(str, Enum):
    ACCEPTED = "accepted"
    # Not an image, missing, or a placeholder such as a 1x1 pixel
    DEGENERATE = "degenerate"
    # Could not tell: timeout, network failure, server error
    UNREACHABLE = "unreachable"


def image_dimensions(data: bytes) -> tuple[int, int] | None:
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        return None


class CoverValidator:
    def __init__(self, min_dimension: int, timeout: float) -> None:
        self.min_dimension = min_dimension
        self.timeout = timeout

    async def inspect(self, url: str) -> ImageCheck:
        log = logger.bind(url=url)

        try:
            async with asyncio.timeout(self.timeout):
                client = await HttpClientManager.get_client()
                response = await client.get(url)
        except TimeoutError:
            log.warning("Cover download timed out", timeout=self.timeout)
            return ImageCheck.UNREACHABLE
        except httpx.HTTPError as e:
            log.warning("Cover download failed", error=str(e))
            return ImageCheck.UNREACHABLE

        if response.status_code in (404, 410):
            log.debug("Cover image missing", status_code=response.status_code)
            return ImageCheck.DEGENERATE
        if response.status_code != 200:
            log.warning("Cover download failed", status_code=response.status_code)
            return ImageCheck.UNREACHABLE

        dimensions = image_dimensions(response.content)
        if dimensions is None:
            log.debug("Cover response is not an image", size=len(response.content))
            return ImageCheck.DEGENERATE

        width, height = dimensions
        if width <= self.min_dimension or height <= self.min_dimension:
            log.debug("Cover image too small", width=width, height=height)
            return ImageCheck.DEGENERATE

        return ImageCheck.ACCEPTED
