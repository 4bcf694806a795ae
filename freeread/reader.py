from __future__ import annotations

import asyncio
import logging
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Callable, Iterable, Optional

import httpx

from .audio import chunk_path, cleanup, combine, combined_path, have_tool, output_dir_for, play, timestamp
from .chunking import Chunk, chunk_text
from .config import ReaderConfig
from .errors import AudioToolError
from .sources import DEFAULT_BASE_NAME
from .speech import fetch_audio

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChunkOutcome:
  index: int
  length: int
  ok: bool
  audio_path: Optional[str] = None
  error: Optional[str] = None


@dataclass
class ReadingResult:
  chunks: list[Chunk]
  outcomes: list[ChunkOutcome] = field(default_factory=list)
  output_dir: Optional[str] = None
  combined_file: Optional[str] = None

  @property
  def failures(self) -> list[ChunkOutcome]:
    return [o for o in self.outcomes if not o.ok]


def new_client(config: ReaderConfig) -> httpx.AsyncClient:
  return httpx.AsyncClient(headers={"User-Agent": config.user_agent})


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None, config: ReaderConfig) -> AsyncIterator[httpx.AsyncClient]:
  if client is not None:
    yield client
    return
  async with new_client(config) as c:
    yield c


async def synthesize_chunk(
  client: httpx.AsyncClient,
  chunk: Chunk,
  config: ReaderConfig,
  dest: str | Path,
) -> ChunkOutcome:
  """
  Submit one chunk and write the returned audio to dest.
  Retrying a chunk is just calling this again with the same Chunk.
  """
  result = await fetch_audio(client, chunk.text, config)
  if not result.ok:
    log.error("Chunk %d failed: %s", chunk.index + 1, result.error)
    return ChunkOutcome(index=chunk.index, length=chunk.length, ok=False, error=result.error)

  dest = Path(dest)
  dest.parent.mkdir(parents=True, exist_ok=True)
  dest.write_bytes(result.audio or b"")
  log.info("Saved chunk %d to %s", chunk.index + 1, dest)
  return ChunkOutcome(index=chunk.index, length=chunk.length, ok=True, audio_path=str(dest))


async def synthesize_all(
  client: httpx.AsyncClient,
  chunks: Iterable[Chunk],
  config: ReaderConfig,
  output_dir: str | Path,
  on_outcome: Callable[[ChunkOutcome], None] | None = None,
) -> list[ChunkOutcome]:
  chunks = list(chunks)
  outcomes: list[ChunkOutcome] = []
  for chunk in chunks:
    log.info("Processing chunk %d/%d (%d chars)", chunk.index + 1, len(chunks), chunk.length)
    outcome = await synthesize_chunk(client, chunk, config, chunk_path(output_dir, chunk.index))
    outcomes.append(outcome)
    if on_outcome is not None:
      on_outcome(outcome)
  return outcomes


def finish_download(
  outcomes: Iterable[ChunkOutcome],
  output_dir: str | Path,
  base_name: str,
  stamp: str,
  keep_chunks: bool = False,
) -> str | None:
  """
  Combine the downloaded chunk files, in chunk order, into one MP3.
  Chunk files are removed only once the combined file exists, and only
  when keep_chunks is false.
  """
  paths = [o.audio_path for o in sorted(outcomes, key=lambda o: o.index) if o.ok and o.audio_path]
  if not paths:
    log.warning("No files were successfully downloaded to combine.")
    return None

  out = combined_path(output_dir, base_name, stamp)
  try:
    combine(paths, out)
  except AudioToolError as e:
    log.error("Failed to combine audio files: %s", e)
    return None

  if not keep_chunks:
    cleanup(paths)
  return str(out)


async def _play_chunks(client: httpx.AsyncClient, chunks: list[Chunk], config: ReaderConfig) -> list[ChunkOutcome]:
  outcomes: list[ChunkOutcome] = []
  with tempfile.TemporaryDirectory(prefix="freeread_") as tmp:
    for chunk in chunks:
      log.info("Processing chunk %d/%d (%d chars)", chunk.index + 1, len(chunks), chunk.length)
      outcome = await synthesize_chunk(client, chunk, config, chunk_path(tmp, chunk.index))
      if outcome.ok:
        try:
          await asyncio.to_thread(play, outcome.audio_path)
        except AudioToolError as e:
          log.error("Playback of chunk %d failed: %s", chunk.index + 1, e)
          outcome = replace(outcome, ok=False, error=str(e))
        # the temp file is gone after this block
        outcome = replace(outcome, audio_path=None)
      outcomes.append(outcome)
  return outcomes


async def read_aloud(
  text: str,
  config: ReaderConfig,
  base_name: str = DEFAULT_BASE_NAME,
  download: bool = False,
  now: datetime | None = None,
  client: httpx.AsyncClient | None = None,
) -> ReadingResult:
  """
  Chunk the text once and submit every chunk in order.

  With download, audio goes to a timestamped output directory and is
  combined into a single MP3 with ffmpeg. Otherwise each chunk is played
  with ffplay as soon as it arrives. Per-chunk failures are reported in the
  result, never raised.
  """
  config.validate()
  if not download and not have_tool("ffplay"):
    raise AudioToolError("ffplay not found on PATH; use download mode instead")

  chunks = chunk_text(text, config.max_chars)
  log.info("Split text into %d chunks", len(chunks))
  result = ReadingResult(chunks=chunks)
  if not chunks:
    return result

  stamp = timestamp(now)
  async with _client_scope(client, config) as c:
    if download:
      out_dir = output_dir_for(config.output_root, base_name, stamp)
      out_dir.mkdir(parents=True, exist_ok=True)
      log.info("Downloading audio files to %s", out_dir)
      result.output_dir = str(out_dir)
      result.outcomes = await synthesize_all(c, chunks, config, out_dir)
      result.combined_file = finish_download(result.outcomes, out_dir, base_name, stamp)
    else:
      result.outcomes = await _play_chunks(c, chunks, config)

  log.info("All chunks processed (%d failed).", len(result.failures))
  return result
