from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

import httpx

from .config import ReaderConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeechResult:
  status_code: int | None
  audio: bytes | None
  content_type: str | None
  error: str | None = None

  @property
  def ok(self) -> bool:
    return self.error is None and bool(self.audio)


def build_generate_params(text: str, config: ReaderConfig) -> dict[str, str]:
  return {
    "input": text,
    "prompt": config.prompt,
    "voice": config.voice.strip().lower(),
    "generation": str(uuid.uuid4()),
  }


async def fetch_audio(client: httpx.AsyncClient, text: str, config: ReaderConfig) -> SpeechResult:
  """
  Request speech for one chunk. Never raises for network or service
  problems; the result carries the error instead.
  """
  try:
    r = await client.get(
      config.endpoint,
      params=build_generate_params(text, config),
      timeout=config.request_timeout,
      follow_redirects=True,
    )
  except httpx.HTTPError as e:
    return SpeechResult(status_code=None, audio=None, content_type=None, error=f"{type(e).__name__}: {e}")

  ct = (r.headers.get("content-type") or "").lower()
  log.debug("<< Response: %s %s", r.status_code, r.url)

  if not 200 <= r.status_code < 300:
    return SpeechResult(r.status_code, None, ct, error=f"HTTP {r.status_code}")
  if not ct.startswith("audio/") and "octet-stream" not in ct:
    return SpeechResult(r.status_code, None, ct, error=f"Unexpected content-type: {ct or 'none'}")
  if not r.content:
    return SpeechResult(r.status_code, None, ct, error="Empty audio response")
  return SpeechResult(r.status_code, r.content, ct)
