from __future__ import annotations

import logging
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Iterable

from .errors import AudioToolError

log = logging.getLogger(__name__)


def timestamp(now: datetime | None = None) -> str:
  return (now or datetime.now()).strftime("%Y%m%d_%H%M%S")


def output_dir_for(root: str | Path, base_name: str, stamp: str) -> Path:
  return Path(root).resolve() / f"openai-fm-output_{base_name}_{stamp}"


def chunk_path(output_dir: str | Path, index: int) -> Path:
  # 1-based on disk
  return Path(output_dir) / f"chunk_{index + 1}.mp3"


def combined_path(output_dir: str | Path, base_name: str, stamp: str) -> Path:
  return Path(output_dir) / f"{base_name}_{stamp}.mp3"


def have_tool(name: str) -> bool:
  return shutil.which(name) is not None


def _run(cmd: list[str], tool: str) -> subprocess.CompletedProcess:
  if not have_tool(tool):
    raise AudioToolError(f"{tool} not found on PATH")
  log.info("Executing: %s", " ".join(cmd))
  proc = subprocess.run(cmd, capture_output=True, text=True)
  if proc.returncode != 0:
    raise AudioToolError(f"{tool} exited with {proc.returncode}: {(proc.stderr or '').strip()}")
  return proc


def combine(paths: Iterable[str | Path], out_file: str | Path) -> Path:
  """
  Join MP3 files with ffmpeg's concat protocol, stream-copied (no re-encode).
  """
  parts = [Path(p).as_posix() for p in paths]
  if not parts:
    raise AudioToolError("No audio files to combine")
  out = Path(out_file)
  _run(["ffmpeg", "-y", "-i", "concat:" + "|".join(parts), "-c", "copy", str(out)], "ffmpeg")
  log.info("Successfully combined %d files into %s", len(parts), out)
  return out


def cleanup(paths: Iterable[str | Path]) -> list[Path]:
  removed: list[Path] = []
  for p in paths:
    p = Path(p)
    try:
      p.unlink()
    except OSError as e:
      log.warning("Failed to delete %s: %s", p, e)
      continue
    removed.append(p)
  return removed


def play(path: str | Path) -> None:
  _run(["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet", str(path)], "ffplay")
