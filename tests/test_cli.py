import pytest

from freeread import cli
from freeread.chunking import chunk_text
from freeread.reader import ChunkOutcome, ReadingResult


@pytest.fixture
def fake_read(monkeypatch):
  calls = []

  async def read_aloud(text, config, **kwargs):
    calls.append((text, config, kwargs))
    chunks = chunk_text(text, config.max_chars)
    outcomes = [ChunkOutcome(index=c.index, length=c.length, ok=True) for c in chunks]
    return ReadingResult(chunks=chunks, outcomes=outcomes, combined_file="/out/x.mp3")

  monkeypatch.setattr(cli, "read_aloud", read_aloud)
  return calls


def test_no_arguments_prints_help(capsys):
  assert cli.main([]) == 0
  assert "usage: freeread" in capsys.readouterr().out


def test_text_input(fake_read):
  assert cli.main(["-v", "Echo", "-b", "Mad Scientist", "-d", "-m", "50", "Hello there."]) == 0
  [(text, config, kwargs)] = fake_read
  assert text == "Hello there."
  assert config.voice == "Echo"
  assert config.vibe == "Mad Scientist"
  assert config.max_chars == 50
  assert kwargs["download"] is True
  assert kwargs["base_name"] == "text_input"


def test_file_input(fake_read, tmp_path):
  path = tmp_path / "journal.txt"
  path.write_text("Dear diary.", encoding="utf-8")
  assert cli.main(["-f", str(path)]) == 0
  [(text, _config, kwargs)] = fake_read
  assert text == "Dear diary."
  assert kwargs["base_name"] == "journal"
  assert kwargs["download"] is False


def test_missing_file(fake_read, tmp_path):
  assert cli.main(["-f", str(tmp_path / "nope.txt")]) == 1
  assert fake_read == []


def test_flags_without_input(fake_read):
  assert cli.main(["-d"]) == 1
  assert fake_read == []


def test_bad_max_chars_is_a_usage_error():
  with pytest.raises(SystemExit) as exc:
    cli.main(["-m", "0", "hello"])
  assert exc.value.code == 2


def test_failures_give_nonzero_exit(monkeypatch):
  async def read_aloud(text, config, **kwargs):
    chunks = chunk_text(text)
    return ReadingResult(chunks=chunks, outcomes=[ChunkOutcome(index=0, length=5, ok=False, error="HTTP 503")])

  monkeypatch.setattr(cli, "read_aloud", read_aloud)
  assert cli.main(["hello"]) == 1
