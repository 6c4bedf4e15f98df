"""
Job payload type and codec.

The queue stores payloads as opaque bytes. Producers that want a structured
payload encode it here before pushing, and consumers decode it from the
handle they popped.
"""

from typing import Any

from pydantic import BaseModel, ValidationError

from dbqueue.exceptions import PayloadDecodeError


class JobPayload(BaseModel):
    """
    Job payload structure.
    Names the job type and carries the data its handler needs.
    """

    job_type: str
    data: dict[str, Any] = {}
    metadata: dict[str, Any] | None = None


def encode_payload(
    job_type: str,
    data: dict[str, Any] | None = None,
    metadata: dict[str, Any] | None = None,
) -> bytes:
    """
    Encode a job description into payload bytes.

    Args:
        job_type: Name the consumer dispatches on.
        data: Handler arguments.
        metadata: Optional free-form metadata.

    Returns:
        UTF-8 encoded JSON.
    """
    payload = JobPayload(job_type=job_type, data=data or {}, metadata=metadata)
    return payload.model_dump_json(exclude_none=True).encode("utf-8")


def decode_payload(raw: bytes | str) -> JobPayload:
    """
    Decode payload bytes produced by encode_payload.

    Raises:
        PayloadDecodeError: If the bytes are not a valid payload.
    """
    try:
        return JobPayload.model_validate_json(raw)
    except ValidationError as e:
        raise PayloadDecodeError(f"Invalid job payload: {e.error_count()} error(s)") from e
