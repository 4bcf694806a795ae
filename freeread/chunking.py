from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MAX_CHARS = 999

_PARAGRAPH_BREAK = "\n\n"
_SENTENCE_ENDS = (". ", "! ", "? ")


@dataclass(frozen=True)
class Chunk:
  index: int
  text: str

  @property
  def length(self) -> int:
    return len(self.text)


def _check_max_chars(max_chars: int) -> None:
  if isinstance(max_chars, bool) or not isinstance(max_chars, int) or max_chars <= 0:
    raise ValueError(f"max_chars must be a positive integer, got {max_chars!r}")


def _cut_point(text: str, max_chars: int) -> int:
  """
  Where to cut `text` (known to be longer than max_chars).
  Paragraph break, then sentence end, then whitespace, then a hard cut.
  """
  window = text[:max_chars]

  para = window.rfind(_PARAGRAPH_BREAK)
  if para != -1:
    return para + len(_PARAGRAPH_BREAK)

  sentence = max(window.rfind(end) for end in _SENTENCE_ENDS)
  if sentence != -1:
    return sentence + 2

  # text[max_chars] exists, so a space right after the window still counts.
  end = max_chars
  while end > 0 and not text[end].isspace():
    end -= 1
  if end == 0:
    return max_chars
  return end


def split_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[str]:
  """
  Split text into pieces no longer than max_chars, preferring paragraph,
  sentence and word boundaries. Text that already fits comes back untouched;
  otherwise every piece is stripped of surrounding whitespace.
  """
  _check_max_chars(max_chars)
  if not text:
    return []
  if len(text) <= max_chars:
    return [text]

  chunks: list[str] = []
  remaining = text.strip()

  while remaining:
    if len(remaining) <= max_chars:
      chunks.append(remaining)
      break

    cut = _cut_point(remaining, max_chars)
    chunks.append(remaining[:cut].strip())
    remaining = remaining[cut:].strip()

  return chunks


def chunk_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[Chunk]:
  return [Chunk(index=i, text=t) for i, t in enumerate(split_text(text, max_chars))]
