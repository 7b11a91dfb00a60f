from __future__ import annotations

import logging
from typing import Optional

from attendance_client.config.settings import ATTENDANCE_PATH
from attendance_client.errors import RequestFailedError
from attendance_client.models import AttendanceRecord, CourseSummary, HistoryEntry
from attendance_client.services import aggregator
from attendance_client.services.gateway import AuthenticatedGateway
from attendance_client.services.transport import RequestSpec, Transport

logger = logging.getLogger(__name__)

FACE_UPLOAD_FAILED_MESSAGE = "Failed to capture or upload photo."


class AttendanceService:
    def __init__(self, gateway: AuthenticatedGateway, transport: Optional[Transport] = None) -> None:
        self._gateway = gateway
        self._transport = transport

    def fetch_records(self) -> list[AttendanceRecord]:
        response = self._gateway.get(ATTENDANCE_PATH)
        payload = response.body if isinstance(response.body, list) else []

        records: list[AttendanceRecord] = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            try:
                records.append(AttendanceRecord.from_api(entry))
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed attendance entry %r: %s", entry.get("id"), exc)
        return records

    def course_summaries(self) -> list[CourseSummary]:
        return aggregator.aggregate(self.fetch_records())

    def history(self) -> list[HistoryEntry]:
        return aggregator.history(self.fetch_records())

    def upload_face_image(self, upload_url: str, image: bytes) -> None:
        """PUT a JPEG capture to the pre-signed URL returned by a submission."""

        if self._transport is None:
            raise RuntimeError("Face image upload needs a transport.")

        response = self._transport.send(
            RequestSpec("PUT", upload_url, data=image, headers={"Content-Type": "image/jpeg"})
        )
        if not response.ok:
            raise RequestFailedError(response.status_code, None, fallback=FACE_UPLOAD_FAILED_MESSAGE)
        logger.info("Face image uploaded")
