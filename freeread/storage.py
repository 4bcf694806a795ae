from __future__ import annotations

import json
import re
import sqlite3
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Iterable, Optional

from .chunking import Chunk
from .config import ReaderConfig

_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]{2,32}$")

CHUNK_STATUSES = ("pending", "done", "failed")


def validate_plan_name(name: str) -> None:
  if not _NAME_RE.match(name or ""):
    raise ValueError("name must match ^[A-Za-z][A-Za-z0-9_-]{2,32}$")


SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS plans (
  plan_id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  created_at INTEGER NOT NULL,
  base_name TEXT NOT NULL,
  config_json TEXT NOT NULL,
  output_dir TEXT,
  stamp TEXT,
  combined_file TEXT
);

CREATE INDEX IF NOT EXISTS idx_plans_name ON plans(name);

CREATE TABLE IF NOT EXISTS plan_chunks (
  plan_id TEXT NOT NULL,
  chunk_index INTEGER NOT NULL,
  text TEXT NOT NULL,
  status TEXT NOT NULL DEFAULT 'pending',
  audio_path TEXT,
  error TEXT,
  updated_at INTEGER NOT NULL,
  PRIMARY KEY(plan_id, chunk_index),
  FOREIGN KEY(plan_id) REFERENCES plans(plan_id)
);
"""


class Storage:
  def __init__(self, db_path: str | Path):
    self.db_path = str(db_path)
    self._init_db()

  def _connect(self) -> sqlite3.Connection:
    conn = sqlite3.connect(self.db_path)
    conn.row_factory = sqlite3.Row
    return conn

  def _init_db(self) -> None:
    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
    with self._connect() as conn:
      conn.executescript(SCHEMA)

  # ---------- Plans ----------
  def save_plan(
    self,
    plan_id: str,
    name: str,
    config: ReaderConfig,
    base_name: str,
    chunks: Iterable[Chunk],
  ) -> None:
    validate_plan_name(name)
    now = int(time.time())
    with self._connect() as conn:
      conn.execute(
        """
        INSERT OR REPLACE INTO plans(plan_id, name, created_at, base_name, config_json)
        VALUES (?, ?, ?, ?, ?)
        """,
        (plan_id, name, now, base_name, json.dumps(asdict(config))),
      )
      conn.execute("DELETE FROM plan_chunks WHERE plan_id = ?", (plan_id,))
      conn.executemany(
        "INSERT INTO plan_chunks(plan_id, chunk_index, text, status, updated_at) VALUES (?, ?, ?, 'pending', ?)",
        [(plan_id, c.index, c.text, now) for c in chunks],
      )

  def load_plan(self, plan_id: str) -> dict[str, Any] | None:
    with self._connect() as conn:
      row = conn.execute("SELECT * FROM plans WHERE plan_id = ?", (plan_id,)).fetchone()
      if not row:
        return None
      chunk_rows = conn.execute(
        "SELECT * FROM plan_chunks WHERE plan_id = ? ORDER BY chunk_index", (plan_id,)
      ).fetchall()
      return {
        "plan_id": row["plan_id"],
        "name": row["name"],
        "created_at": row["created_at"],
        "base_name": row["base_name"],
        "config": ReaderConfig(**json.loads(row["config_json"])),
        "output_dir": row["output_dir"],
        "stamp": row["stamp"],
        "combined_file": row["combined_file"],
        "chunks": [
          {
            "index": int(c["chunk_index"]),
            "text": c["text"],
            "length": len(c["text"]),
            "status": c["status"],
            "audio_path": c["audio_path"],
            "error": c["error"],
          }
          for c in chunk_rows
        ],
      }

  def list_plans(self) -> list[dict[str, Any]]:
    """List plans with per-status chunk counts, newest first."""
    with self._connect() as conn:
      rows = conn.execute(
        """
        SELECT
          p.plan_id,
          p.name,
          p.created_at,
          p.combined_file,
          COUNT(c.chunk_index) AS chunk_count,
          SUM(CASE WHEN c.status = 'done' THEN 1 ELSE 0 END) AS done_count,
          SUM(CASE WHEN c.status = 'failed' THEN 1 ELSE 0 END) AS failed_count
        FROM plans p
        LEFT JOIN plan_chunks c ON c.plan_id = p.plan_id
        GROUP BY p.plan_id
        ORDER BY p.created_at DESC, p.plan_id
        """
      ).fetchall()
      return [
        {
          "plan_id": r["plan_id"],
          "name": r["name"],
          "created_at": int(r["created_at"]),
          "combined_file": r["combined_file"],
          "chunk_count": int(r["chunk_count"]),
          "done": int(r["done_count"] or 0),
          "failed": int(r["failed_count"] or 0),
        }
        for r in rows
      ]

  # ---------- Chunk outcomes ----------
  def record_chunk(
    self,
    plan_id: str,
    index: int,
    status: str,
    audio_path: Optional[str] = None,
    error: Optional[str] = None,
  ) -> None:
    if status not in CHUNK_STATUSES:
      raise ValueError(f"status must be one of {CHUNK_STATUSES}, got {status!r}")
    with self._connect() as conn:
      cur = conn.execute(
        """
        UPDATE plan_chunks SET status = ?, audio_path = ?, error = ?, updated_at = ?
        WHERE plan_id = ? AND chunk_index = ?
        """,
        (status, audio_path, error, int(time.time()), plan_id, int(index)),
      )
      if cur.rowcount == 0:
        raise KeyError(f"No chunk {index} in plan {plan_id}")

  def set_output_dir(self, plan_id: str, output_dir: str, stamp: str) -> None:
    with self._connect() as conn:
      conn.execute(
        "UPDATE plans SET output_dir = ?, stamp = ? WHERE plan_id = ?",
        (output_dir, stamp, plan_id),
      )

  def set_combined(self, plan_id: str, combined_file: str | None) -> None:
    with self._connect() as conn:
      conn.execute("UPDATE plans SET combined_file = ? WHERE plan_id = ?", (combined_file, plan_id))
