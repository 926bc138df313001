from __future__ import annotations
import asyncio
import logging
from typing import Any, Callable

import cv2

from .config import StationSettings

logger = logging.getLogger(__name__)

class CameraUnavailable(RuntimeError):
    pass

def choose_camera_index(settings: StationSettings) -> int:
    """Environment-facing camera when one is configured for a handheld device, else the default."""
    if settings.facing_mode == "environment" and settings.rear_camera_index is not None:
        return settings.rear_camera_index
    return settings.camera_index

class Camera:
    """
    Scoped camera handle. The capture device is released on every exit from
    ``async with``, including errors and cancellation.
    """

    def __init__(self, index: int, *, opener: Callable[[int], Any] = cv2.VideoCapture):
        self.index = index
        self._opener = opener
        self._cap = None

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    async def __aenter__(self) -> "Camera":
        cap = await asyncio.to_thread(self._opener, self.index)
        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise CameraUnavailable(f"Camera {self.index} could not be opened")
        self._cap = cap
        logger.info(f"Camera {self.index} opened")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()

    async def read(self):
        if self._cap is None:
            raise CameraUnavailable("Camera is not open")
        ok, frame = await asyncio.to_thread(self._cap.read)
        return frame if ok else None

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info(f"Camera {self.index} released")
