"""Command-line interface for localekit.

WHY: Users need a simple way to translate a JSON locale file from the
terminal. The CLI wires together the full pipeline (file loading,
exclusion lists, the LLM client, the document translator and file
saving) behind a single command.

HOW: Uses argparse to accept an input JSON file, target language codes,
excluded paths, model and chunk size. Runs the async pipeline via
asyncio.run(). Status messages go to stderr; each translated variant is
saved next to the source (or to --output-dir) as {code}{ext}.

RULES:
- Positional argument: input JSON file path
- --languages: comma-separated locale codes (required)
- --exclude (repeatable) and --exclude-file (one path per line) are merged
- Output is two-space indented JSON with non-ASCII kept as is
- The source file is never overwritten
- Progress and errors are written to stderr, never stdout
- Exit code 1 if the input is unusable or any language failed
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from localekit.api.client import LLMClient
from localekit.config import DEFAULT_MODEL, TranslationSettings
from localekit.core.orchestrator import (
    DocumentTranslator,
    VariantResult,
    translate_variants,
)


def _status(msg: str) -> None:
    """Write one progress line to stderr.

    WHY: stdout stays free for piping.

    RULES:
    - stderr only
    - Always flush after writing
    """
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def _parse_languages(raw: str) -> List[str]:
    """Split a comma-separated language list, dropping blanks and duplicates."""
    codes: List[str] = []
    for part in raw.split(","):
        code = part.strip()
        if code and code not in codes:
            codes.append(code)
    return codes


def _load_exclusions(paths: Optional[List[str]], exclude_file: Optional[str]) -> List[str]:
    """Collect excluded paths from --exclude flags and an optional file.

    RULES:
    - Blank lines and lines starting with "#" in the file are ignored
    - A missing exclude file is an error
    """
    excluded = [p.strip() for p in (paths or []) if p.strip()]
    if exclude_file:
        file_path = Path(exclude_file)
        if not file_path.is_file():
            _fail("Exclude file not found: {}".format(file_path))
        for line in file_path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                excluded.append(line)
    return excluded


def _resolve_output_path(source: Path, output_dir: Path, code: str) -> Optional[Path]:
    """Return {output_dir}/{code}{ext}, or None if that is the source file.

    WHY: Translating en_us.json into "en_us" would otherwise overwrite the
    file being translated.
    """
    target = output_dir / "{}{}".format(code, source.suffix or ".json")
    if target.resolve() == source.resolve():
        return None
    return target


def _save_variant(path: Path, value) -> None:  # noqa: ANN001
    path.write_text(
        json.dumps(value, indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )


async def _run_pipeline(args: argparse.Namespace) -> List[VariantResult]:
    """Execute the full translation pipeline.

    WHY: This is the async core of the CLI. It validates the inputs,
    translates every requested language and saves each success.

    HOW: Loads the document, builds the settings and an LLMClient, then
    runs translate_variants() with a callback that saves or reports each
    language as soon as it finishes.

    RULES:
    - Validate the input file and output directory before any API call
    - Save each variant as soon as it succeeds
    - Report each failure with its classified message
    """
    input_path = Path(args.input_file).resolve()
    if not input_path.is_file():
        _fail("File not found: {}".format(input_path))

    try:
        document = json.loads(input_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        _fail("Could not read {} as JSON: {}".format(input_path.name, e))

    output_dir = Path(args.output_dir).resolve() if args.output_dir else input_path.parent
    if not output_dir.is_dir():
        _fail("Output directory does not exist: {}".format(output_dir))

    codes = _parse_languages(args.languages)
    if not codes:
        _fail("No target languages given")

    excluded = _load_exclusions(args.exclude, args.exclude_file)
    if excluded:
        _status("Excluding {} path(s) from translation".format(len(excluded)))

    settings = TranslationSettings.from_env()
    if args.chunk_size:
        settings = dataclasses.replace(settings, chunk_size_bytes=args.chunk_size)

    saved: List[Path] = []

    def _on_result(result: VariantResult) -> None:
        if not result.ok:
            _status("  {}: FAILED ({}) {}".format(result.code, result.kind.value, result.message))
            return
        target = _resolve_output_path(input_path, output_dir, result.code)
        if target is None:
            _status("  {}: skipped, output would overwrite the source file".format(result.code))
            return
        _save_variant(target, result.value)
        saved.append(target)
        _status("  {}: saved {}".format(result.code, target.name))

    async with LLMClient(model=args.model) as client:
        translator = DocumentTranslator(client.transform, settings=settings, on_status=_status)
        _status("Translating {} into {} language(s) with {}...".format(
            input_path.name, len(codes), client.model
        ))
        results = await translate_variants(
            translator, document, codes, excluded=excluded, on_result=_on_result
        )

    _status("")
    _status("Done! Saved {} file(s) to {}".format(len(saved), output_dir))
    return results


def build_parser() -> argparse.ArgumentParser:
    """Declare the command-line arguments.

    RULES:
    - input_file is the source JSON document
    - Required: --languages (comma-separated)
    - Optional: --exclude (repeatable), --exclude-file, --model,
      --output-dir, --chunk-size, --verbose
    """
    parser = argparse.ArgumentParser(
        prog="localekit",
        description="Translate the string values of a JSON document into one "
                    "or more languages with an LLM, keeping its structure intact.",
    )

    parser.add_argument(
        "input_file",
        help="Path to the JSON file to translate.",
    )

    parser.add_argument(
        "--languages",
        required=True,
        help="Comma-separated target locale codes (e.g. de_de,fr_fr).",
    )

    parser.add_argument(
        "--exclude",
        action="append",
        default=None,
        help="Path that must not be translated (e.g. 'meta' or '[0]'). "
             "Can be specified multiple times.",
    )

    parser.add_argument(
        "--exclude-file",
        default=None,
        help="Path to a file listing excluded paths, one per line.",
    )

    parser.add_argument(
        "--model",
        default=DEFAULT_MODEL,
        help="Model id; the provider is derived from it (default: %(default)s).",
    )

    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory to save translated files (default: same as input file).",
    )

    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Maximum chunk size in bytes for large documents.",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug logging (recovery stages, retries, token usage).",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Run the CLI (``python -m localekit`` and the ``localekit`` script).

    RULES:
    - argv defaults to sys.argv; tests pass their own list
    - Exits 1 when any language failed, 130 on Ctrl-C
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        results = asyncio.run(_run_pipeline(args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except ValueError as e:
        # Config errors (missing API key, unsupported provider)
        _fail(str(e))

    if any(not r.ok for r in results):
        sys.exit(1)


if __name__ == "__main__":
    main()
