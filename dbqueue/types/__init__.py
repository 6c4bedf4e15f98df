"""
Type definitions for the job queue.
"""

from dbqueue.types.job import JobPayload, decode_payload, encode_payload

__all__ = [
    "JobPayload",
    "encode_payload",
    "decode_payload",
]
