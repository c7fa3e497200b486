"""Tests for firehose frame decoding."""

from __future__ import annotations

import json

import libipld
import pytest

from listmirror.firehose.decoder import FirehoseErrorFrame, decode_frame


def _label(uri: str = "did:plc:abc", val: str = "maga-trump", **extra) -> dict:
    return {
        "ver": 1,
        "src": "did:plc:labeler",
        "uri": uri,
        "val": val,
        "cts": "2024-11-01T00:00:00.000Z",
        **extra,
    }


def _cbor_frame(header: dict, body: dict) -> bytes:
    return libipld.encode_dag_cbor(header) + libipld.encode_dag_cbor(body)


def test_binary_labels_message():
    frame = _cbor_frame(
        {"op": 1, "t": "#labels"},
        {"seq": 42, "labels": [_label(), _label(uri="did:plc:def", neg=True)]},
    )

    events = decode_frame(frame)

    assert [e.uri for e in events] == ["did:plc:abc", "did:plc:def"]
    assert [e.neg for e in events] == [False, True]
    assert all(e.seq == 42 for e in events)
    assert events[0].val == "maga-trump"


def test_binary_single_object_payload():
    frame = libipld.encode_dag_cbor({"label": _label(seq=7)})

    events = decode_frame(frame)

    assert len(events) == 1
    assert events[0].seq == 7
    assert events[0].neg is False


def test_binary_error_frame_raises():
    frame = _cbor_frame({"op": -1}, {"error": "FutureCursor", "message": "cursor in the future"})

    with pytest.raises(FirehoseErrorFrame) as exc_info:
        decode_frame(frame)

    assert exc_info.value.error == "FutureCursor"
    assert exc_info.value.message == "cursor in the future"


def test_binary_info_frame_dropped():
    frame = _cbor_frame({"op": 1, "t": "#info"}, {"name": "OutdatedCursor"})
    assert decode_frame(frame) == []


def test_malformed_binary_frame_dropped():
    assert decode_frame(b"\xff\xfe\x00garbage") == []


def test_bytearray_frame_accepted():
    frame = bytearray(_cbor_frame({"op": 1, "t": "#labels"}, {"seq": 1, "labels": [_label()]}))
    assert len(decode_frame(frame)) == 1


def test_json_labels_message():
    frame = json.dumps({"seq": 3, "labels": [_label(), _label(val="spam")]})

    events = decode_frame(frame)

    assert [e.val for e in events] == ["maga-trump", "spam"]


def test_json_single_label():
    events = decode_frame(json.dumps({"label": _label(neg=True)}))

    assert len(events) == 1
    assert events[0].neg is True


def test_json_null_neg_normalised():
    events = decode_frame(json.dumps({"label": _label(neg=None)}))
    assert events[0].neg is False


def test_non_json_text_dropped():
    assert decode_frame("not json {") == []


def test_json_non_object_dropped():
    assert decode_frame("[1, 2, 3]") == []


def test_message_without_labels_ignored():
    assert decode_frame(json.dumps({"seq": 5, "ops": []})) == []


def test_invalid_entry_skipped_others_kept():
    frame = json.dumps({"labels": [{"uri": "did:plc:abc"}, "junk", _label(uri="did:plc:ok")]})

    events = decode_frame(frame)

    assert [e.uri for e in events] == ["did:plc:ok"]


def test_record_uri_subject_kept_for_handler():
    events = decode_frame(json.dumps({"label": _label(uri="at://did:plc:abc/app.bsky.feed.post/3k")}))

    assert len(events) == 1
    assert events[0].did is None
