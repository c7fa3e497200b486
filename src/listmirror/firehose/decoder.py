"""Decode labeler firehose frames into LabelEvents."""

from __future__ import annotations

import json
from typing import Any

import libipld
from pydantic import ValidationError

from listmirror.common.logging import get_logger
from listmirror.common.models import LabelEvent

log = get_logger(__name__)

ERROR_OP = -1


class FirehoseErrorFrame(Exception):
    """The server sent an error frame (``op == -1``) and will close the stream."""

    def __init__(self, error: str | None, message: str | None = None) -> None:
        self.error = error
        self.message = message
        super().__init__(f"{error}: {message}" if message else str(error))


def decode_frame(data: bytes | bytearray | memoryview | str) -> list[LabelEvent]:
    """Turn one websocket frame into zero or more label events.

    Binary frames are DAG-CBOR: a ``{op, t}`` header followed by the message
    body (a lone object is taken as the body).  Text frames are JSON.
    Anything undecodable is logged and dropped.  Raises
    ``FirehoseErrorFrame`` for server error frames so the caller can react.
    """
    try:
        if isinstance(data, str):
            payload = _decode_text(data)
        else:
            payload = _decode_binary(bytes(data))
        if payload is None:
            return []
        return _extract_labels(payload)
    except FirehoseErrorFrame:
        raise
    except Exception as exc:
        log.error("firehose_frame_decode_failed", error=str(exc))
        return []


def _decode_text(data: str) -> dict[str, Any] | None:
    try:
        payload = json.loads(data)
    except ValueError:
        log.warning("firehose_non_json_text_frame", size=len(data))
        return None
    if not isinstance(payload, dict):
        log.debug("firehose_text_frame_not_object", kind=type(payload).__name__)
        return None
    return payload


def _decode_binary(data: bytes) -> dict[str, Any] | None:
    objects = libipld.decode_dag_cbor_multi(data)
    if not objects:
        log.warning("firehose_empty_binary_frame")
        return None
    if len(objects) == 1:
        return objects[0] if isinstance(objects[0], dict) else None

    header, body = objects[0], objects[1]
    if not isinstance(header, dict) or not isinstance(body, dict):
        log.warning("firehose_malformed_binary_frame")
        return None
    if header.get("op") == ERROR_OP:
        raise FirehoseErrorFrame(body.get("error"), body.get("message"))
    if header.get("t") == "#info":
        log.info("firehose_info_frame", name=body.get("name"), message=body.get("message"))
        return None
    return body


def _extract_labels(payload: dict[str, Any]) -> list[LabelEvent]:
    raw_labels = payload.get("labels")
    if isinstance(raw_labels, list):
        entries = raw_labels
    elif payload.get("label"):
        entries = [payload["label"]]
    else:
        log.debug("firehose_not_label_message", keys=sorted(payload)[:10])
        return []

    message_seq = payload.get("seq")
    events: list[LabelEvent] = []
    for entry in entries:
        if not isinstance(entry, dict):
            log.warning("firehose_label_entry_invalid", kind=type(entry).__name__)
            continue
        if message_seq is not None and entry.get("seq") is None:
            entry = {**entry, "seq": message_seq}
        try:
            events.append(LabelEvent.model_validate(entry))
        except ValidationError as exc:
            log.warning("firehose_label_entry_invalid", error=str(exc), uri=entry.get("uri"))
    return events
