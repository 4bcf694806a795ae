from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import httpx
import trafilatura

from .errors import SourceError

log = logging.getLogger(__name__)

_HTML_SUFFIXES = {".html", ".htm", ".xhtml"}
DEFAULT_BASE_NAME = "text_input"


@dataclass(frozen=True)
class SourceText:
  text: str
  base_name: str


def looks_like_url(value: str) -> bool:
  return value.startswith(("http://", "https://"))


def extract_readable(html: str) -> str:
  extracted = trafilatura.extract(html, include_comments=False, include_tables=True)
  return (extracted or "").strip()


async def fetch_page(client: httpx.AsyncClient, url: str, timeout: float = 30.0) -> tuple[int | None, str | None]:
  try:
    r = await client.get(url, timeout=timeout, follow_redirects=True)
  except httpx.HTTPError as e:
    log.warning("Fetching %s failed: %s", url, e)
    return None, None
  ct = (r.headers.get("content-type") or "").lower()
  if "text/html" not in ct and "application/xhtml+xml" not in ct:
    return r.status_code, None
  return r.status_code, r.text


def read_file(path: str | Path) -> str:
  p = Path(path)
  try:
    raw = p.read_text(encoding="utf-8")
  except (OSError, UnicodeDecodeError) as e:
    raise SourceError(f"Error reading file {p}: {e}") from e
  if p.suffix.lower() in _HTML_SUFFIXES:
    return extract_readable(raw)
  return raw


def _url_base_name(url: str) -> str:
  segment = urlparse(url).path.rstrip("/").rsplit("/", 1)[-1]
  stem = Path(segment).stem
  return stem or urlparse(url).netloc or DEFAULT_BASE_NAME


async def load_source(client: httpx.AsyncClient, value: str, is_file: bool = False) -> SourceText:
  """
  Resolve the user's input into text to read.
  With is_file the value is a path; a URL is fetched and its main text
  extracted; anything else is the text itself.
  """
  if is_file:
    path = Path(value).resolve()
    text = read_file(path)
    log.info("Read %d characters from file: %s", len(text), path)
    return SourceText(text=text, base_name=path.stem or DEFAULT_BASE_NAME)

  if looks_like_url(value):
    status, html = await fetch_page(client, value)
    if not html:
      raise SourceError(f"No HTML fetched from {value} (status {status})")
    text = extract_readable(html)
    if not text:
      raise SourceError(f"No readable text found at {value}")
    log.info("Extracted %d characters from %s", len(text), value)
    return SourceText(text=text, base_name=_url_base_name(value))

  return SourceText(text=value, base_name=DEFAULT_BASE_NAME)
