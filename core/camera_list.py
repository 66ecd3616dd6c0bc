"""
Enumerate cameras with display names. On Windows uses DirectShow (pygrabber) for exact names;
same device order as OpenCV with CAP_DSHOW.
"""

from __future__ import annotations

import logging
import sys
from typing import NamedTuple

import cv2

logger = logging.getLogger(__name__)


class CameraInfo(NamedTuple):
    index: int
    name: str


def _probe_opencv(max_cameras: int = 8) -> list[CameraInfo]:
    """Open indices 0..max_cameras-1 and keep the ones that respond."""
    found: list[CameraInfo] = []
    for i in range(max_cameras):
        cap = cv2.VideoCapture(i)
        try:
            if cap.isOpened():
                found.append(CameraInfo(i, f"Camera {i}"))
        finally:
            cap.release()
    return found


def get_camera_list() -> list[CameraInfo]:
    """
    Available cameras in OpenCV index order.
    Windows with pygrabber installed reports device names; elsewhere names are "Camera N".
    """
    if sys.platform == "win32":
        try:
            from pygrabber.dshow_graph import FilterGraph
        except ImportError:
            logger.debug("pygrabber not installed; probing cameras with OpenCV")
        else:
            devices = FilterGraph().get_input_devices()
            if devices:
                return [CameraInfo(i, name) for i, name in enumerate(devices)]
    cameras = _probe_opencv()
    logger.debug("Found %d camera(s)", len(cameras))
    return cameras
