from datetime import datetime
from pathlib import Path

import pytest

from freeread import reader
from freeread.chunking import split_text
from freeread.config import ReaderConfig
from freeread.errors import AudioToolError
from freeread.reader import read_aloud

TEXT = "First sentence here. Second one is longer. Third bit."
NOW = datetime(2024, 1, 2, 3, 4, 5)


@pytest.mark.asyncio
async def test_download_submits_chunks_in_order_and_combines(speech, config, fake_combine, monkeypatch):
  monkeypatch.setattr(reader, "combine", fake_combine)
  expected = split_text(TEXT, config.max_chars)

  async with speech.client() as client:
    result = await read_aloud(TEXT, config, base_name="notes", download=True, now=NOW, client=client)

  assert speech.inputs == expected
  assert [c.text for c in result.chunks] == expected
  assert all(o.ok for o in result.outcomes)
  assert result.failures == []

  out_dir = Path(result.output_dir)
  assert out_dir.name == "openai-fm-output_notes_20240102_030405"
  combined = Path(result.combined_file)
  assert combined == out_dir / "notes_20240102_030405.mp3"
  assert combined.read_bytes() == "".join(expected).encode()
  assert [Path(p).name for p in fake_combine.calls[0]] == [f"chunk_{i + 1}.mp3" for i in range(len(expected))]
  # chunk files go away once combined
  assert sorted(p.name for p in out_dir.iterdir()) == [combined.name]


@pytest.mark.asyncio
async def test_failed_chunk_is_reported_not_resplit(speech, config, fake_combine, monkeypatch):
  monkeypatch.setattr(reader, "combine", fake_combine)
  speech.failing.add("Second")

  async with speech.client() as client:
    result = await read_aloud(TEXT, config, download=True, now=NOW, client=client)

  assert len(result.outcomes) == len(result.chunks)
  [failed] = result.failures
  assert "Second" in result.chunks[failed.index].text
  assert failed.error == "HTTP 503"
  assert len(fake_combine.calls[0]) == len(result.chunks) - 1


@pytest.mark.asyncio
async def test_combine_failure_keeps_chunk_files(speech, config, monkeypatch):
  def broken_combine(paths, out_file):
    raise AudioToolError("ffmpeg not found on PATH")

  monkeypatch.setattr(reader, "combine", broken_combine)
  async with speech.client() as client:
    result = await read_aloud(TEXT, config, download=True, now=NOW, client=client)

  assert result.combined_file is None
  assert all(Path(o.audio_path).exists() for o in result.outcomes)


@pytest.mark.asyncio
async def test_retrying_a_chunk_resubmits_identical_text(speech, config, tmp_path):
  chunk = reader.chunk_text(TEXT, config.max_chars)[1]
  speech.failing.add(chunk.text)

  async with speech.client() as client:
    first = await reader.synthesize_chunk(client, chunk, config, tmp_path / "c.mp3")
    speech.failing.clear()
    second = await reader.synthesize_chunk(client, chunk, config, tmp_path / "c.mp3")

  assert not first.ok and second.ok
  assert speech.inputs == [chunk.text, chunk.text]
  assert (tmp_path / "c.mp3").read_bytes() == chunk.text.encode()


@pytest.mark.asyncio
async def test_playback_mode(speech, config, monkeypatch):
  played = []
  monkeypatch.setattr(reader, "have_tool", lambda name: True)
  monkeypatch.setattr(reader, "play", lambda path: played.append(Path(path).read_bytes()))

  async with speech.client() as client:
    result = await read_aloud(TEXT, config, client=client)

  assert played == [c.text.encode() for c in result.chunks]
  assert result.output_dir is None
  assert all(o.ok and o.audio_path is None for o in result.outcomes)


@pytest.mark.asyncio
async def test_playback_failure_marks_chunk(speech, config, monkeypatch):
  def broken_play(path):
    raise AudioToolError("ffplay exited with 1: no audio device")

  monkeypatch.setattr(reader, "have_tool", lambda name: True)
  monkeypatch.setattr(reader, "play", broken_play)

  async with speech.client() as client:
    result = await read_aloud(TEXT, config, client=client)

  assert len(result.failures) == len(result.chunks)
  assert "no audio device" in result.failures[0].error


@pytest.mark.asyncio
async def test_playback_needs_ffplay(config, monkeypatch):
  monkeypatch.setattr(reader, "have_tool", lambda name: False)
  with pytest.raises(AudioToolError, match="ffplay"):
    await read_aloud(TEXT, config)


@pytest.mark.asyncio
async def test_empty_text_submits_nothing(speech, config):
  async with speech.client() as client:
    result = await read_aloud("", config, download=True, client=client)
  assert result.chunks == []
  assert speech.inputs == []
  assert result.output_dir is None


@pytest.mark.asyncio
async def test_invalid_limit_fails_before_any_request(speech, config):
  bad = ReaderConfig(max_chars=0)
  async with speech.client() as client:
    with pytest.raises(ValueError):
      await read_aloud(TEXT, bad, download=True, client=client)
  assert speech.inputs == []
