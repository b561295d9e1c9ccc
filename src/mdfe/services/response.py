from __future__ import annotations

import json
import logging
from typing import Any

from mdfe.models.response import NormalizedResponse
from mdfe.models.result import Err, Ok, Result
from mdfe.services.exceptions import EnvelopeError

logger = logging.getLogger(__name__)

ENVELOPE_EXCEPTION = "EXCEPTION"


def _decode_json(raw_body: str, http_code: int) -> Any:
    """Parse JSON, yielding None for empty or malformed bodies."""
    try:
        return json.loads(raw_body)
    except (json.JSONDecodeError, ValueError):
        logger.warning(
            "Resposta não-JSON (HTTP %s): %s", http_code, (raw_body or "")[:500]
        )
        return None


def interpret(
    raw_body: str,
    http_code: int,
    info: dict[str, Any] | None = None,
    decode: bool = False,
    debug: bool = False,
) -> NormalizedResponse:
    """Normalize a raw transport result.

    The body is JSON-decoded when *decode* is set or the status is not 200,
    so error payloads are always inspectable. A 200 without *decode* stays
    raw text, which is what check_envelope() expects.
    """
    if decode or http_code != 200:
        body = _decode_json(raw_body, http_code)
    else:
        body = raw_body
    return NormalizedResponse(
        body=body,
        http_code=http_code,
        info=info if debug else None,
    )


def check_envelope(response: NormalizedResponse) -> Result[NormalizedResponse]:
    """Detect the ``EXCEPTION,<...>,<message>`` text envelope.

    Only text bodies can carry the envelope; decoded JSON passes through.
    """
    if not isinstance(response.body, str):
        return Ok(response)

    fields = response.body.split(",")
    if fields[0] != ENVELOPE_EXCEPTION:
        return Ok(response)

    message = fields[2] if len(fields) > 2 else response.body
    return Err(EnvelopeError(message, response=response))
