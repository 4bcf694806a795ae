from __future__ import annotations


class FreereadError(Exception):
  """Base class for orchestration failures."""


class SourceError(FreereadError):
  """Input text could not be read or extracted."""


class AudioToolError(FreereadError):
  """ffmpeg/ffplay missing or exited with an error."""
