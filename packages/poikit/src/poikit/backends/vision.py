"""On-device vision-language model backend."""

from __future__ import annotations

from PIL import UnidentifiedImageError

from poikit.backends.base import ModelBackend
from poikit.errors import ExtractionFailed
from poikit.imaging import to_jpeg_bytes
from poikit.models import BackendKind, ExtractionMode, POICandidate
from poikit.prompts import VISION_PROMPT


class VisionModelBackend(ModelBackend):
    """Image-only extraction with a local VLM.

    The image is re-encoded as JPEG before generation.  Candidates read
    straight from the image get ``image_confidence_bonus`` on top of the
    completeness score.
    """

    kind = BackendKind.VISION
    modes = frozenset({ExtractionMode.IMAGE})

    async def extract_from_image(self, image_bytes: bytes) -> POICandidate:
        try:
            jpeg = to_jpeg_bytes(
                image_bytes,
                quality=self._config.vision_jpeg_quality,
                max_dimension=self._config.image_max_dimension,
            )
        except (UnidentifiedImageError, OSError) as exc:
            raise ExtractionFailed(
                f"image encoding failed: {exc}", backend=self.name()
            ) from exc

        raw = await self.generate(VISION_PROMPT, jpeg)
        return self._parse(raw, bonus=self._config.image_confidence_bonus)
