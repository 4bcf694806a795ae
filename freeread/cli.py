from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from .config import VIBE_PRESETS, ReaderConfig
from .errors import FreereadError
from .reader import new_client, read_aloud
from .sources import load_source

log = logging.getLogger("freeread")

EPILOG = """\
Examples:
  freeread "This is the text to convert to speech"
  freeread -f path/to/text/file.txt
  freeread -v Echo -b "Mad Scientist" "This is the text to convert"
  freeread -d -f journal.txt
  freeread -d https://example.com/article
"""


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="freeread",
    description="Read long text aloud through openai.fm, one chunk at a time.",
    epilog=EPILOG,
    formatter_class=argparse.RawDescriptionHelpFormatter,
  )
  parser.add_argument("input", nargs="?", help="text, file path (with --file) or http(s) URL")
  parser.add_argument("-f", "--file", action="store_true", help="treat the input as a file path")
  parser.add_argument("-v", "--voice", help="voice to use (default: Coral)")
  parser.add_argument(
    "-b", "--vibe",
    help=f"vibe preset ({', '.join(VIBE_PRESETS)}) or free-form prompt text (default: Calm)",
  )
  parser.add_argument("-d", "--download", action="store_true", help="download and combine audio instead of playing")
  parser.add_argument("-m", "--max-chars", type=int, help="maximum characters per chunk (default: 999)")
  parser.add_argument("-o", "--output-root", help="directory for download output folders")
  parser.add_argument("--verbose", action="store_true", help="debug logging")
  return parser


async def _run(args: argparse.Namespace, config: ReaderConfig) -> int:
  async with new_client(config) as client:
    src = await load_source(client, args.input, is_file=args.file)
    if not src.text.strip():
      log.error("Input contains no text to read.")
      return 1
    result = await read_aloud(
      src.text,
      config,
      base_name=src.base_name,
      download=args.download,
      client=client,
    )

  if result.failures:
    log.warning("%d of %d chunks failed: %s", len(result.failures), len(result.chunks),
                ", ".join(str(o.index + 1) for o in result.failures))
  if result.combined_file:
    log.info("Combined audio: %s", result.combined_file)
  return 0 if not result.failures else 1


def main(argv: Sequence[str] | None = None) -> int:
  parser = build_parser()
  argv = sys.argv[1:] if argv is None else list(argv)
  if not argv:
    parser.print_help()
    return 0

  args = parser.parse_args(argv)
  logging.basicConfig(
    level=logging.DEBUG if args.verbose else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
  )

  if not args.input:
    log.error("No input text or file path provided. Use --help for usage information.")
    return 1

  try:
    config = ReaderConfig.from_env().with_overrides(
      voice=args.voice,
      vibe=args.vibe,
      max_chars=args.max_chars,
      output_root=args.output_root,
    )
  except ValueError as e:
    parser.error(str(e))

  try:
    return asyncio.run(_run(args, config))
  except FreereadError as e:
    log.error("%s", e)
    return 1


if __name__ == "__main__":
  sys.exit(main())
