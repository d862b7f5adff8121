"""Helpers for decoding msgspec request bodies and encoding msgspec responses."""

from __future__ import annotations

from typing import TypeVar

import msgspec
from fastapi import HTTPException, Request, status
from starlette.responses import Response

MAX_CALLBACK_BYTES = 5 * 1024 * 1024

T = TypeVar("T", bound=msgspec.Struct)


async def decode_msgspec_request(request: Request, struct_type: type[T], *, max_bytes: int = MAX_CALLBACK_BYTES) -> T:
  """Decode a JSON request body into a msgspec.Struct, rejecting oversized or malformed payloads."""
  payload_bytes = await request.body()
  if len(payload_bytes) > max_bytes:
    raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Request payload too large.")
  try:
    return msgspec.json.decode(payload_bytes, type=struct_type)
  except msgspec.ValidationError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid request payload: {exc}") from exc
  except msgspec.DecodeError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body is not valid JSON.") from exc


def encode_msgspec_response(payload: msgspec.Struct, *, status_code: int = 200) -> Response:
  """Encode a msgspec.Struct as a JSON response."""
  return Response(content=msgspec.json.encode(payload), status_code=status_code, media_type="application/json")
