from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Callable

import cv2

logger = logging.getLogger(__name__)

class DecoderInitError(RuntimeError):
    pass

class QRDecoder:
    def __init__(self, detector_factory: Callable[[], Any] = cv2.QRCodeDetector):
        try:
            self._detector = detector_factory()
        except cv2.error as e:
            raise DecoderInitError(f"QR decoder failed to initialise: {e}") from e

    def decode(self, frame) -> str | None:
        """Decoded text of the first QR code in the frame, or None."""
        if frame is None:
            return None
        try:
            text, _points, _ = self._detector.detectAndDecode(frame)
        except cv2.error as e:
            logger.debug(f"Frame decode failed: {e}")
            return None
        return text or None

    def decode_image_file(self, path: str | Path) -> str | None:
        image = cv2.imread(str(path))
        if image is None:
            raise ValueError(f"Could not read image: {path}")
        return self.decode(image)
