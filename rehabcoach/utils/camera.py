from __future__ import annotations

from typing import Any, Dict, List, Union

import cv2


def enumerate_cameras(max_devices: int = 6, backend: int = cv2.CAP_ANY) -> List[int]:
    indices: List[int] = []
    for idx in range(max_devices):
        cap = cv2.VideoCapture(idx, backend)
        if cap.isOpened():
            indices.append(idx)
        cap.release()
    return indices


def open_capture(source: Union[int, str], frame_cfg: Dict[str, Any]) -> cv2.VideoCapture:
    cap = cv2.VideoCapture(source)
    if not cap.isOpened():
        raise RuntimeError(f"Failed to open camera source '{source}'.")
    target_width = int(frame_cfg.get("target_width", 960))
    target_height = int(frame_cfg.get("target_height", int(target_width * 0.75)))
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, target_width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, target_height)
    cap.set(cv2.CAP_PROP_FPS, int(frame_cfg.get("fps", 30)))
    return cap
