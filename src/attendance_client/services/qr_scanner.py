from __future__ import annotations

import logging
import threading
import time
import unicodedata
from contextlib import suppress
from typing import Any, Callable, Optional

from attendance_client.config.client_storage import (
    CAMERA_PERMISSION_KEY,
    ClientStorage,
    StorageUnavailableError,
)
from attendance_client.errors import FaceCaptureError, PermissionDeniedError, ScannerUnavailableError

logger = logging.getLogger(__name__)

SCAN_INTERVAL_SECONDS = 0.08
DEDUP_INTERVAL_SECONDS = 0.8
FRAME_READ_ATTEMPTS = 10
JPEG_QUALITY = 90

PayloadCallback = Callable[[str], Any]
ErrorCallback = Callable[[Exception], None]


def decode_symbol_data(raw: bytes | str) -> str:
    if not raw:
        return ""

    if isinstance(raw, str):
        decoded = raw
    else:
        try:
            decoded = raw.decode("utf-8")
        except UnicodeDecodeError:
            decoded = raw.decode("utf-8", errors="ignore")

    return unicodedata.normalize("NFC", decoded).strip()


class PayloadDeduplicator:
    """Drop a payload repeated within ``interval`` seconds of its last emission."""

    def __init__(self, interval: float = DEDUP_INTERVAL_SECONDS) -> None:
        self._interval = interval
        self._last_payload: Optional[str] = None
        self._last_timestamp = 0.0

    def accept(self, payload: str, now: float) -> bool:
        if self._last_payload == payload and (now - self._last_timestamp) < self._interval:
            return False
        self._last_payload = payload
        self._last_timestamp = now
        return True


class QRScanner:
    """Background camera loop emitting decoded QR text.

    ``on_payload`` receives each decoded string; ``on_error`` receives
    ``PermissionDeniedError`` when the camera cannot be opened and
    ``ScannerUnavailableError`` when OpenCV or zxing-cpp is missing.
    """

    def __init__(self, camera_index: int = 0, storage: Optional[ClientStorage] = None) -> None:
        self._camera_index = camera_index
        self._storage = storage
        self._running = False
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._latest_frame = None

    def start(self, on_payload: PayloadCallback, *, on_error: Optional[ErrorCallback] = None) -> bool:
        with self._lock:
            if self._running:
                return True

            try:
                import cv2  # type: ignore[import-not-found]
                import zxingcpp  # type: ignore[import-not-found]
            except ImportError as exc:
                logger.warning("QR scanner dependencies missing: %s", exc)
                if on_error:
                    on_error(ScannerUnavailableError())
                return False

            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(on_payload, on_error, cv2, zxingcpp),
                daemon=True,
            )
            self._running = True
            self._thread.start()
            return True

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.5)
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def camera_previously_denied(self) -> bool:
        return self._cached_permission() == "denied"

    def capture_jpeg(self, *, cv2_module=None) -> bytes:
        """Return one camera frame as JPEG bytes.

        Reuses the newest frame of a running scan loop, otherwise opens the
        camera just long enough to read a frame.
        """

        cv2_module = cv2_module or _load_cv2()
        with self._lock:
            frame = self._latest_frame if self._running else None
        if frame is None:
            frame = self._grab_frame(cv2_module)

        ok, encoded = cv2_module.imencode(".jpg", frame, [cv2_module.IMWRITE_JPEG_QUALITY, JPEG_QUALITY])
        if not ok:
            raise FaceCaptureError()
        return encoded.tobytes()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _run_loop(self, on_payload, on_error, cv2_module, zxing_module) -> None:
        capture = None
        dedup = PayloadDeduplicator()

        try:
            capture = self._open_capture(cv2_module)
            if capture is None:
                self._remember_permission("denied")
                if on_error:
                    on_error(PermissionDeniedError())
                return
            self._remember_permission("granted")

            while not self._stop_event.is_set():
                ok, frame = capture.read()
                if not ok:
                    time.sleep(SCAN_INTERVAL_SECONDS)
                    continue
                with self._lock:
                    self._latest_frame = frame

                for payload in self._decode_frame(zxing_module, frame):
                    if not dedup.accept(payload, time.time()):
                        continue
                    try:
                        on_payload(payload)
                    except Exception:  # pragma: no cover - guard callback faults
                        logger.exception("QR payload handler failed")

                time.sleep(SCAN_INTERVAL_SECONDS)
        finally:
            if capture is not None:
                with suppress(Exception):
                    capture.release()
            self._stop_event.clear()
            with self._lock:
                self._running = False
                self._latest_frame = None

    def _grab_frame(self, cv2_module):
        capture = self._open_capture(cv2_module)
        if capture is None:
            self._remember_permission("denied")
            raise PermissionDeniedError()
        self._remember_permission("granted")

        try:
            for _ in range(FRAME_READ_ATTEMPTS):
                ok, frame = capture.read()
                if ok and frame is not None:
                    return frame
                time.sleep(SCAN_INTERVAL_SECONDS)
        finally:
            with suppress(Exception):
                capture.release()

        logger.warning("Camera %s returned no frame", self._camera_index)
        raise FaceCaptureError()

    @staticmethod
    def _decode_frame(zxing_module, frame) -> list[str]:
        try:
            decoded = zxing_module.read_barcodes(
                frame,
                formats=zxing_module.BarcodeFormat.QRCode,
                try_rotate=True,
                try_downscale=True,
            )
        except Exception as exc:
            logger.debug("Frame decode failed: %s", exc)
            return []

        payloads: list[str] = []
        for obj in decoded or []:
            if hasattr(obj, "valid") and not obj.valid:
                continue
            payload = decode_symbol_data(getattr(obj, "text", ""))
            if not payload:
                payload_bytes = getattr(obj, "bytes", b"") or b""
                payload = decode_symbol_data(bytes(payload_bytes))
            if payload:
                payloads.append(payload)
        return payloads

    def _open_capture(self, cv2_module):
        backend_preferences = [getattr(cv2_module, "CAP_DSHOW", None), getattr(cv2_module, "CAP_ANY", None)]

        for backend in backend_preferences:
            if backend is None:
                capture = cv2_module.VideoCapture(self._camera_index)
            else:
                capture = cv2_module.VideoCapture(self._camera_index, backend)

            if capture.isOpened():
                return capture
            capture.release()

        logger.warning("Unable to open camera %s", self._camera_index)
        return None

    def _cached_permission(self) -> Optional[str]:
        return self._storage.get(CAMERA_PERMISSION_KEY) if self._storage else None

    def _remember_permission(self, state: str) -> None:
        if self._storage is None:
            return
        try:
            self._storage.set(CAMERA_PERMISSION_KEY, state)
        except StorageUnavailableError as exc:
            logger.warning("Could not store camera permission: %s", exc)


def _load_cv2():
    try:
        import cv2  # type: ignore[import-not-found]
    except ImportError as exc:
        logger.warning("OpenCV is missing: %s", exc)
        raise ScannerUnavailableError() from exc
    return cv2
