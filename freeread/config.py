from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from .chunking import DEFAULT_MAX_CHARS

DEFAULT_ENDPOINT = "https://www.openai.fm/api/generate"

VIBE_PRESETS: dict[str, str] = {
  "Calm": (
    "Voice: Soft, steady and reassuring.\n\n"
    "Tone: Calm and unhurried, with gentle warmth.\n\n"
    "Pacing: Even, with natural pauses between sentences."
  ),
  "Mad Scientist": (
    "Delivery: Exaggerated and theatrical, with dramatic pauses, sudden outbursts, and gleeful cackling.\n\n"
    "Voice: High-energy, eccentric, and slightly unhinged, with a manic enthusiasm that rises and falls unpredictably.\n\n"
    "Tone: Excited, chaotic, and grandiose, as if reveling in the brilliance of a mad experiment.\n\n"
    "Pronunciation: Sharp and expressive, with elongated vowels, sudden inflections, and an emphasis on big words to sound more diabolical."
  ),
}

# env var -> (field, parser)
_ENV_FIELDS: dict[str, tuple[str, Any]] = {
  "FREEREAD_MAX_CHARS": ("max_chars", int),
  "FREEREAD_VOICE": ("voice", str),
  "FREEREAD_VIBE": ("vibe", str),
  "FREEREAD_ENDPOINT": ("endpoint", str),
  "FREEREAD_TIMEOUT": ("request_timeout", float),
  "FREEREAD_OUTPUT_ROOT": ("output_root", str),
  "FREEREAD_DB": ("db_path", str),
}


@dataclass(frozen=True)
class ReaderConfig:
  max_chars: int = DEFAULT_MAX_CHARS
  voice: str = "Coral"
  vibe: str = "Calm"  # preset name or raw prompt text
  endpoint: str = DEFAULT_ENDPOINT
  request_timeout: float = 60.0
  output_root: str = "."
  db_path: str = os.path.join(".freeread", "freeread.db")
  user_agent: str = "freeread/0.1"

  @property
  def prompt(self) -> str:
    return VIBE_PRESETS.get(self.vibe, self.vibe)

  def validate(self) -> "ReaderConfig":
    if isinstance(self.max_chars, bool) or not isinstance(self.max_chars, int) or self.max_chars <= 0:
      raise ValueError(f"max_chars must be a positive integer, got {self.max_chars!r}")
    if not self.voice or not self.voice.strip():
      raise ValueError("voice must not be empty")
    if not self.endpoint.startswith(("http://", "https://")):
      raise ValueError(f"endpoint must be an http(s) URL, got {self.endpoint!r}")
    if self.request_timeout <= 0:
      raise ValueError("request_timeout must be positive")
    return self

  def with_overrides(self, **overrides: Any) -> "ReaderConfig":
    """Copy with every non-None override applied."""
    known = {f.name for f in fields(self)}
    unknown = set(overrides) - known
    if unknown:
      raise ValueError(f"Unknown config field(s): {', '.join(sorted(unknown))}")
    changes = {k: v for k, v in overrides.items() if v is not None}
    return replace(self, **changes).validate()

  @staticmethod
  def from_env(environ: Mapping[str, str] | None = None) -> "ReaderConfig":
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for var, (name, parse) in _ENV_FIELDS.items():
      raw = env.get(var)
      if raw is None or raw == "":
        continue
      try:
        values[name] = parse(raw)
      except ValueError as e:
        raise ValueError(f"{var}={raw!r} is not a valid {parse.__name__}") from e
    return ReaderConfig(**values).validate()
