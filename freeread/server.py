from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from .audio import chunk_path, output_dir_for, timestamp
from .chunking import Chunk, chunk_text
from .config import ReaderConfig
from .errors import SourceError
from .reader import ChunkOutcome, finish_download, new_client, synthesize_all, synthesize_chunk
from .sources import load_source
from .storage import Storage

# stdio transport: stdout carries the protocol, logs go to stderr only.
logging.basicConfig(level=logging.INFO)
log = logging.getLogger("freeread")

mcp = FastMCP("freeread")

BASE_CONFIG = ReaderConfig.from_env()
_storage: Storage | None = None


def get_storage() -> Storage:
  global _storage
  if _storage is None:
    _storage = Storage(BASE_CONFIG.db_path)
  return _storage


def _new_id(prefix: str) -> str:
  return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _preview(chunks: list[Chunk], width: int = 80) -> list[dict[str, Any]]:
  return [
    {"index": c.index, "length": c.length, "preview": c.text[:width]}
    for c in chunks
  ]


def _record(storage: Storage, plan_id: str, outcome: ChunkOutcome) -> None:
  storage.record_chunk(
    plan_id,
    outcome.index,
    "done" if outcome.ok else "failed",
    audio_path=outcome.audio_path,
    error=outcome.error,
  )


def _combine_if_complete(storage: Storage, plan_id: str) -> str | None:
  """Combine once every chunk of the plan has audio; a partial track is never written."""
  plan = storage.load_plan(plan_id)
  if not plan or not plan["chunks"] or not plan["output_dir"]:
    return None
  if any(c["status"] != "done" for c in plan["chunks"]):
    return None

  outcomes = [
    ChunkOutcome(index=c["index"], length=c["length"], ok=True, audio_path=c["audio_path"])
    for c in plan["chunks"]
  ]
  combined = finish_download(outcomes, plan["output_dir"], plan["base_name"], plan["stamp"], keep_chunks=True)
  storage.set_combined(plan_id, combined)
  return combined


@mcp.tool()
async def split_text(text: str, max_chars: int = 999) -> dict[str, Any]:
  """
  Preview how text would be split for reading.

  Args:
    text: The text to split.
    max_chars: Maximum characters per chunk (the site's input limit).
  """
  try:
    chunks = chunk_text(text, max_chars)
  except ValueError as e:
    return {"ok": False, "error": str(e)}
  return {
    "ok": True,
    "max_chars": max_chars,
    "chunk_count": len(chunks),
    "chunks": [{"index": c.index, "length": c.length, "text": c.text} for c in chunks],
  }


@mcp.tool()
async def plan_reading(
  name: str,
  source: str,
  is_file: bool = False,
  voice: str | None = None,
  vibe: str | None = None,
  max_chars: int | None = None,
) -> dict[str, Any]:
  """
  Load and split a text without generating any audio.
  Returns the chunks the server intends to submit.

  Args:
    name: A label for this reading (3-33 chars, starts with a letter, letters/numbers/underscores/hyphens).
    source: The text itself, a file path (with is_file) or an http(s) URL to extract text from.
    is_file: Treat source as a path on the server's filesystem.
    voice: Voice to use (default from configuration, e.g. "Coral").
    vibe: Vibe preset name ("Calm", "Mad Scientist") or free-form prompt text.
    max_chars: Maximum characters per chunk.
  """
  try:
    config = BASE_CONFIG.with_overrides(voice=voice, vibe=vibe, max_chars=max_chars)
    async with new_client(config) as client:
      src = await load_source(client, source, is_file=is_file)
    if not src.text.strip():
      return {"ok": False, "error": "Source contains no text"}
    chunks = chunk_text(src.text, config.max_chars)
    plan_id = _new_id("plan")
    get_storage().save_plan(plan_id=plan_id, name=name, config=config, base_name=src.base_name, chunks=chunks)
  except (ValueError, SourceError) as e:
    return {"ok": False, "error": str(e)}

  return {
    "ok": True,
    "plan_id": plan_id,
    "name": name,
    "base_name": src.base_name,
    "voice": config.voice,
    "vibe": config.vibe,
    "max_chars": config.max_chars,
    "chunk_count": len(chunks),
    "chunks": _preview(chunks),
    "note": "Approval gate: review the chunks, then call run_reading(plan_id).",
  }


@mcp.tool()
async def run_reading(plan_id: str) -> dict[str, Any]:
  """
  Execute an approved plan: generate audio for every chunk not yet done,
  then combine all chunks into one MP3.
  """
  storage = get_storage()
  plan = storage.load_plan(plan_id)
  if not plan:
    return {"ok": False, "error": f"Unknown plan_id: {plan_id}"}

  config: ReaderConfig = plan["config"]
  output_dir = plan["output_dir"]
  if not output_dir:
    stamp = timestamp()
    output_dir = str(output_dir_for(config.output_root, plan["base_name"], stamp))
    storage.set_output_dir(plan_id, output_dir, stamp)
  Path(output_dir).mkdir(parents=True, exist_ok=True)

  todo = [Chunk(index=c["index"], text=c["text"]) for c in plan["chunks"] if c["status"] != "done"]
  started = int(time.time())

  async with new_client(config) as client:
    outcomes = await synthesize_all(
      client, todo, config, output_dir,
      on_outcome=lambda o: _record(storage, plan_id, o),
    )

  combined = _combine_if_complete(storage, plan_id)
  finished = int(time.time())
  failures = [{"index": o.index, "error": o.error} for o in outcomes if not o.ok]
  return {
    "ok": True,
    "plan_id": plan_id,
    "started_at": started,
    "finished_at": finished,
    "duration_sec": finished - started,
    "chunks_total": len(plan["chunks"]),
    "chunks_submitted": len(todo),
    "chunks_failed": len(failures),
    "output_dir": output_dir,
    "combined_file": combined,
    "failures": failures[:20],
    "next": "Use retry_chunk(plan_id, index) for failed chunks." if failures else None,
  }


@mcp.tool()
async def retry_chunk(plan_id: str, index: int) -> dict[str, Any]:
  """
  Resubmit one chunk of a plan, unchanged.

  Args:
    plan_id: The plan the chunk belongs to.
    index: Zero-based chunk index.
  """
  storage = get_storage()
  plan = storage.load_plan(plan_id)
  if not plan:
    return {"ok": False, "error": f"Unknown plan_id: {plan_id}"}
  if not plan["output_dir"]:
    return {"ok": False, "error": "Plan has not been run yet; call run_reading(plan_id) first."}
  match = [c for c in plan["chunks"] if c["index"] == index]
  if not match:
    return {"ok": False, "error": f"No chunk {index} in plan {plan_id}"}

  chunk = Chunk(index=index, text=match[0]["text"])
  async with new_client(plan["config"]) as client:
    outcome = await synthesize_chunk(client, chunk, plan["config"], chunk_path(plan["output_dir"], index))
  _record(storage, plan_id, outcome)

  return {
    "ok": outcome.ok,
    "plan_id": plan_id,
    "index": index,
    "audio_path": outcome.audio_path,
    "error": outcome.error,
    "combined_file": _combine_if_complete(storage, plan_id) if outcome.ok else None,
  }


@mcp.tool()
async def get_plan(plan_id: str) -> dict[str, Any]:
  plan = get_storage().load_plan(plan_id)
  if not plan:
    return {"ok": False, "error": f"Unknown plan_id: {plan_id}"}
  config: ReaderConfig = plan.pop("config")
  return {"ok": True, "voice": config.voice, "vibe": config.vibe, "max_chars": config.max_chars, **plan}


@mcp.tool()
async def list_plans() -> dict[str, Any]:
  return {"plans": get_storage().list_plans()}


def main() -> None:
  mcp.run(transport="stdio")


if __name__ == "__main__":
  main()
