"""
autotag - Audio auto-tagging CLI

Analyzes local audio files the same way uploads are analyzed: each file
becomes a record in an in-memory store, the pipeline writes its analysis
and the reactive reconciliation pass fills the empty metadata fields.

Example usage:
    autotag loop.wav
    autotag --type vocal --output records.json take1.wav take2.wav
    autotag --recursive samples/
"""

import argparse
import json
import mimetypes
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from autotag import __version__
from autotag.core.engine import create_pipeline
from autotag.core.models import UploadEvent
from autotag.core.store import InMemoryDocumentStore, create_document_store
from autotag.core.uploads import AUDIO_EXTENSIONS
from autotag.utils.errors import AutotagError
from autotag.utils.config import load_config
from autotag.utils.logging import get_logger, setup_logging

LOCAL_OWNER = "local"

logger = get_logger("cli")


def collect_audio_files(inputs: List[Path], recursive: bool = False) -> List[Path]:
    """Expand directories into the audio files they contain."""
    files: List[Path] = []
    for path in inputs:
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            files.extend(
                sorted(
                    p for p in path.glob(pattern)
                    if p.is_file() and p.suffix.lower() in AUDIO_EXTENSIONS
                )
            )
        else:
            files.append(path)
    return files


def upload_event_for(path: Path, file_id: str) -> UploadEvent:
    """Describe a local file as if it had been uploaded."""
    content_type, _ = mimetypes.guess_type(path.name)
    return UploadEvent(
        object_path=f"users/{LOCAL_OWNER}/files/{file_id}/{path.name}",
        content_type=content_type or "",
    )


def print_record(path: Path, record: Dict[str, Any]) -> None:
    """Print a record summary to console."""
    auto = record.get("auto") or {}
    print("\n" + "=" * 60)
    print(f"File: {path.name}")
    print("-" * 60)
    print(f"  Type: {record.get('type')}"
          + (f" (suggested: {record['type_auto']})" if record.get("type_auto") else ""))
    print(f"  BPM: {record.get('bpm')}")
    print(f"  Key: {record.get('key')}")
    print(f"  Tags: {', '.join(record.get('tags') or []) or '-'}")

    if len(auto) <= 1:
        print("  Analysis: unavailable (could not decode)")
        return

    print(f"\n  Loudness: {auto.get('loudness')} dB")
    print(f"  Brightness: {auto.get('brightness')}")
    print(f"  Percussive: {auto.get('percussive')}")
    if auto.get("bpm") is not None:
        print(f"  Tempo: {auto['bpm']} BPM (confidence {auto.get('bpm_confidence')}, "
              f"alternates {auto.get('alt_bpms')})")
    if auto.get("key"):
        print(f"  Key estimate: {auto['key']} (confidence {auto.get('key_confidence')})")


def analyze_files(
    files: List[Path],
    config: Dict[str, Any],
    initial_type: Optional[str] = None,
    output_json: Optional[Path] = None,
    quiet: bool = False,
) -> int:
    """
    Analyze files and reconcile them into fresh records.

    Returns:
        Exit code (0 for success, 1 if any file was missing)
    """
    store: InMemoryDocumentStore = create_document_store(config.get("store", {}))
    placeholder = config.get("reconcile", {}).get("placeholder_type", "audio")
    exit_code = 0
    records: Dict[str, Dict[str, Any]] = {}

    with create_pipeline(config, store) as pipeline:
        for index, path in enumerate(files, start=1):
            if not path.exists():
                print(f"Error: Audio file not found: {path}", file=sys.stderr)
                exit_code = 1
                continue

            file_id = f"{index:04d}-{path.stem}"
            event = upload_event_for(path, file_id)
            record_key = f"users/{LOCAL_OWNER}/files/{file_id}"
            store.set(record_key, {"type": initial_type or placeholder, "tags": []})

            if pipeline.process(event, path) is None:
                logger.warning(f"Skipped {path}: not recognised as audio")
                continue

            record = store.get(record_key) or {}
            records[str(path)] = record
            if not quiet:
                print_record(path, record)

    if output_json:
        with open(output_json, "w") as f:
            json.dump(records, f, indent=2, default=str)
        print(f"\nJSON results saved to: {output_json}")

    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the autotag CLI."""
    parser = argparse.ArgumentParser(
        prog="autotag",
        description="Derive tempo, key, tags and type for audio files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  autotag loop.wav
  autotag --type vocal take.wav
  autotag --recursive --output records.json samples/
        """
    )
    parser.add_argument(
        "inputs",
        type=Path,
        nargs="+",
        help="Audio file(s) or directory to analyze"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--type",
        dest="initial_type",
        default=None,
        help="Type already set by the user (default: the placeholder type)"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to save the resulting records as JSON"
    )
    parser.add_argument(
        "--recursive",
        "-r",
        action="store_true",
        help="Search directories recursively"
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Do not print per-file summaries"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"autotag {__version__}"
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(str(args.config) if args.config else None)
    except AutotagError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging_config = config.get("logging", {})
    log_level = "DEBUG" if args.verbose else logging_config.get("level", "INFO")
    setup_logging(
        level=log_level,
        log_format=logging_config.get("format", "text"),
        log_file=logging_config.get("file"),
        colored=True,
        console_enabled=True
    )

    files = collect_audio_files(args.inputs, recursive=args.recursive)
    if not files:
        print("Error: No audio files found", file=sys.stderr)
        return 1

    return analyze_files(
        files,
        config,
        initial_type=args.initial_type,
        output_json=args.output,
        quiet=args.quiet,
    )


if __name__ == "__main__":
    sys.exit(main())
