from __future__ import annotations

from typing import Callable

import httpx
import pytest

from freeread.config import ReaderConfig


class FakeSpeechService:
  """Stands in for the generate endpoint: echoes the input text back as 'audio'."""

  def __init__(self) -> None:
    self.inputs: list[str] = []
    self.failing: set[str] = set()

  def __call__(self, request: httpx.Request) -> httpx.Response:
    text = request.url.params["input"]
    self.inputs.append(text)
    if any(marker in text for marker in self.failing):
      return httpx.Response(503, text="busy")
    return httpx.Response(200, content=text.encode("utf-8"), headers={"content-type": "audio/mpeg"})

  def client(self) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def speech() -> FakeSpeechService:
  return FakeSpeechService()


@pytest.fixture
def config(tmp_path) -> ReaderConfig:
  return ReaderConfig(
    max_chars=20,
    output_root=str(tmp_path / "out"),
    db_path=str(tmp_path / "db" / "freeread.db"),
  )


@pytest.fixture
def fake_combine() -> Callable:
  calls: list[list[str]] = []

  def combine(paths, out_file):
    paths = [str(p) for p in paths]
    calls.append(paths)
    with open(out_file, "wb") as out:
      for p in paths:
        with open(p, "rb") as f:
          out.write(f.read())
    return out_file

  combine.calls = calls
  return combine
