import json
import logging
from typing import List, Optional
import numpy as np
from eduos.config import settings

logger = logging.getLogger(__name__)


class FaceMatcher:
    """Compares a stored admin face template with the one presented at login.

    ``match`` returns a similarity score in [0, 1]; 1.0 is an exact match.
    """

    def match(self, stored: str, presented: str) -> float:
        raise NotImplementedError

    def is_match(self, stored: str, presented: str) -> bool:
        return self.match(stored, presented) >= 1.0 - settings.FACE_MATCH_THRESHOLD


class EncodingFaceMatcher(FaceMatcher):
    """Templates are JSON lists of floats (face encodings), scored by euclidean distance."""

    @staticmethod
    def _decode(template: str) -> Optional[np.ndarray]:
        try:
            values = json.loads(template)
        except (TypeError, ValueError):
            return None
        if isinstance(values, dict):
            values = values.get("encoding")
        if not isinstance(values, list) or not values:
            return None
        try:
            return np.asarray(values, dtype=float)
        except (TypeError, ValueError):
            return None

    def match(self, stored: str, presented: str) -> float:
        stored_encoding = self._decode(stored)
        presented_encoding = self._decode(presented)

        if stored_encoding is None or presented_encoding is None:
            # opaque templates only match themselves
            return 1.0 if stored == presented else 0.0
        if stored_encoding.shape != presented_encoding.shape:
            return 0.0

        distance = float(np.linalg.norm(stored_encoding - presented_encoding))
        return max(0.0, 1.0 - distance)


class BypassFaceMatcher(FaceMatcher):
    """Accepts every template. Development only."""

    def match(self, stored: str, presented: str) -> float:
        return 1.0


def encode_template(encoding: List[float]) -> str:
    return json.dumps([float(v) for v in encoding])


_face_matcher: Optional[FaceMatcher] = None


def get_face_matcher() -> FaceMatcher:
    global _face_matcher
    if _face_matcher is None:
        if settings.FACE_MATCH_BYPASS:
            logger.warning("FACE_MATCH_BYPASS is enabled: admin face templates are not compared")
            _face_matcher = BypassFaceMatcher()
        else:
            _face_matcher = EncodingFaceMatcher()
    return _face_matcher
