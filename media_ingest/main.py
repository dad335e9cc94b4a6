import argparse
import asyncio
import json
import mimetypes
import sys
from pathlib import Path

from media_ingest.config.settings import Settings
from media_ingest.intake.validator import IntakeValidator
from media_ingest.logging.logger import Log
from media_ingest.pipeline.exceptions import InvalidInputError, PipelineError
from media_ingest.pipeline.orchestrator import build_orchestrator
from media_ingest.transcode.models import OutputFormat, ProcessingOptions


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="media-ingest",
        description="Validate, sanitize and publish image uploads.",
    )
    parser.add_argument("files", nargs="+", type=Path)
    parser.add_argument("--format", choices=[fmt.value for fmt in OutputFormat])
    parser.add_argument("--quality", type=int)
    parser.add_argument("--width", type=int)
    parser.add_argument("--height", type=int)
    parser.add_argument("--thumbnail-size", type=int)
    return parser.parse_args(argv)


async def _ingest_files(settings: Settings, args: argparse.Namespace) -> list[dict[str, object]]:
    orchestrator = build_orchestrator(settings)
    validator = IntakeValidator.from_settings(settings)
    options = ProcessingOptions.from_settings(
        settings,
        target_width=args.width,
        target_height=args.height,
        quality=args.quality,
        output_format=args.format,
        thumbnail_size=args.thumbnail_size,
    )
    candidates = []
    for path in args.files:
        # A transport would declare the type from the client; here the name stands in.
        declared_type, _ = mimetypes.guess_type(path.name)
        with path.open("rb") as stream:
            candidates.append(
                validator.receive(
                    stream,
                    declared_mime_type=declared_type,
                    declared_size=path.stat().st_size,
                    original_filename=path.name,
                )
            )
    results = await orchestrator.ingest_batch(candidates, options)
    return [result.to_dict() for result in results]


def main(argv: list[str] | None = None) -> int:
    """Entry point: load settings -> configure logging -> ingest files -> print descriptors."""
    args = _parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)

    try:
        payload = asyncio.run(_ingest_files(settings, args))
    except PipelineError as exc:
        print(json.dumps({"error": exc.to_payload()}), file=sys.stderr)
        return 1
    except OSError as exc:
        Log.error(f"Could not read input: {exc}")
        error = InvalidInputError("Could not read input file")
        print(json.dumps({"error": error.to_payload()}), file=sys.stderr)
        return 1
    print(json.dumps({"uploads": payload}, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
