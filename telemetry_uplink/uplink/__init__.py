"""Delivery of fixes to the ingestion endpoint."""

from .backoff import BackoffConfig, ExponentialBackoff
from .record import DEFAULT_PRECISION, decode_record, encode_record
from .retry_buffer import BufferedFix, RetryBuffer
from .session import UplinkSession
from .stats import SendResult, UplinkStats
from .transport import BaseUplinkTransport, StreamUplinkTransport

__all__ = [
    "BackoffConfig",
    "BaseUplinkTransport",
    "BufferedFix",
    "DEFAULT_PRECISION",
    "ExponentialBackoff",
    "RetryBuffer",
    "SendResult",
    "StreamUplinkTransport",
    "UplinkSession",
    "UplinkStats",
    "decode_record",
    "encode_record",
]
