"""Labeler firehose subscription, frame decoding and event handling."""

from listmirror.firehose.client import ConnectionState, FirehoseClient
from listmirror.firehose.decoder import decode_frame
from listmirror.firehose.handler import LabelEventHandler

__all__ = ["ConnectionState", "FirehoseClient", "LabelEventHandler", "decode_frame"]
