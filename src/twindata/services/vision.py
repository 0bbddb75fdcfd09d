"""Photo analysis with a multimodal chat model."""

import base64

import httpx
import structlog

from twindata.errors import TwinDataError
from twindata.models.vision import ImageAnalysis, PhotoContext
from twindata.services.chat import ChatModel, strip_code_fences
from twindata.services.prompts import build_photo_prompt

DEFAULT_MEDIA_TYPE = "image/jpeg"


class VisionAnalyzer:
    """Downloads a photo, sends it with a prompt to the vision model and parses the JSON reply."""

    def __init__(
        self,
        chat: ChatModel,
        http_client: httpx.AsyncClient | None = None,
        download_timeout: float = 30.0,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._chat = chat
        self._http_client = http_client
        self._download_timeout = download_timeout
        self._logger = logger or structlog.get_logger(__name__)

    async def analyze_photo(
        self,
        url: str,
        context: PhotoContext,
        prompt_name: str,
        user_description: str = "",
    ) -> ImageAnalysis:
        """Analyse the photo at ``url``.

        Never raises: any failure yields ``ImageAnalysis.not_analyzed()``.
        """
        try:
            if not url:
                raise TwinDataError("a photo URL is required")
            image, media_type = await self._download(url)
            prompt = build_photo_prompt(prompt_name, context, user_description)
            encoded = base64.b64encode(image).decode("ascii")
            response = await self._chat.complete(
                [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{encoded}"}},
                ]
            )
            analysis = ImageAnalysis.model_validate_json(strip_code_fences(response))
        except Exception as error:
            self._logger.warning("photo_analysis_failed", file_name=context.file_name, error=str(error))
            return ImageAnalysis.not_analyzed()

        self._logger.info("photo_analyzed", file_name=context.file_name, prompt=prompt_name)
        return analysis

    async def _download(self, url: str) -> tuple[bytes, str]:
        if self._http_client is not None:
            response = await self._http_client.get(url, timeout=self._download_timeout)
        else:
            async with httpx.AsyncClient(timeout=self._download_timeout) as client:
                response = await client.get(url)
        response.raise_for_status()
        if not response.content:
            raise TwinDataError("downloaded image is empty")
        media_type = response.headers.get("content-type", "").split(";")[0].strip() or DEFAULT_MEDIA_TYPE
        self._logger.debug("photo_downloaded", bytes=len(response.content), media_type=media_type)
        return response.content, media_type


__all__ = ["VisionAnalyzer"]
