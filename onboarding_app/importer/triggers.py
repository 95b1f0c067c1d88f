"""
Trigger payloads that start an onboarding import.

A payload names the uploaded object (``bucket``/``key``), the school, and
optionally the status record to finalize. Payloads arrive bare, as JSON text,
batched under ``Records[].body`` from a queue, or wrapped in an event envelope
under ``detail``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterator, Mapping

from flask import current_app


class InvalidTriggerPayload(ValueError):
    """Raised when a trigger payload is malformed or missing required keys."""


_REQUIRED_KEYS = ("bucket", "key", "schoolId")


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


@dataclass(frozen=True)
class TriggerPayload:
    bucket: str
    key: str
    school_id: str
    status_table: str | None = None
    status_id: str | None = None
    error_report_key: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TriggerPayload":
        if not isinstance(data, Mapping):
            raise InvalidTriggerPayload(f"Trigger payload must be an object, got {type(data).__name__}.")
        missing = [name for name in _REQUIRED_KEYS if not _clean(data.get(name))]
        if missing:
            raise InvalidTriggerPayload(f"Trigger payload missing required keys: {', '.join(missing)}.")
        return cls(
            bucket=_clean(data["bucket"]),
            key=_clean(data["key"]),
            school_id=_clean(data["schoolId"]),
            status_table=_clean(data.get("statusTable")),
            status_id=_clean(data.get("statusId")),
            error_report_key=_clean(data.get("errorReportKey")),
        )

    @property
    def tracks_status(self) -> bool:
        return bool(self.status_id)

    def to_dict(self) -> dict[str, str]:
        """Serialize with the external camelCase names, omitting empty keys."""

        payload = {
            "bucket": self.bucket,
            "key": self.key,
            "schoolId": self.school_id,
            "statusTable": self.status_table,
            "statusId": self.status_id,
            "errorReportKey": self.error_report_key,
        }
        return {name: value for name, value in payload.items() if value is not None}


def _decode_json(raw: str | bytes) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidTriggerPayload(f"Trigger payload is not valid JSON: {exc}") from exc


def parse_trigger_payload(value: Mapping[str, Any] | str | bytes) -> TriggerPayload:
    if isinstance(value, (str, bytes)):
        value = _decode_json(value)
    return TriggerPayload.from_mapping(value)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes)):
        return not value.strip()
    return isinstance(value, Mapping) and not value


def iter_trigger_payloads(event: Mapping[str, Any] | str | bytes | None) -> Iterator[TriggerPayload]:
    """
    Yield every payload carried by ``event`` in arrival order.

    Empty bodies are skipped with a warning; malformed ones raise
    ``InvalidTriggerPayload``.
    """

    if _is_empty(event):
        current_app.logger.warning("Importer trigger event was empty; nothing to process")
        return
    if isinstance(event, (str, bytes)):
        event = _decode_json(event)

    if isinstance(event, Mapping) and isinstance(event.get("Records"), list):
        for record in event["Records"]:
            body = record.get("body") if isinstance(record, Mapping) else None
            if _is_empty(body):
                current_app.logger.warning(
                    "Importer queue record had an empty body; skipping",
                    extra={"importer_message_id": record.get("messageId") if isinstance(record, Mapping) else None},
                )
                continue
            yield parse_trigger_payload(body)
        return

    if isinstance(event, Mapping) and "detail" in event:
        detail = event.get("detail")
        if _is_empty(detail):
            current_app.logger.warning(
                "Importer event envelope had an empty detail; skipping",
                extra={"importer_event_id": event.get("id")},
            )
            return
        yield parse_trigger_payload(detail)
        return

    yield parse_trigger_payload(event)


__all__ = ["InvalidTriggerPayload", "TriggerPayload", "iter_trigger_payloads", "parse_trigger_payload"]
