from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from dataclasses import replace
from datetime import timezone
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .config import Settings, build_openai_client, create_summary_service
from .logging_config import setup_logging, uvicorn_log_config
from .summaries import (
    AuthenticationError,
    InvalidInputError,
    OpenAIClient,
    PromptValidationError,
    ProviderError,
    SummarizerError,
    SummaryCancelledError,
    SummaryOptions,
    SummaryRecord,
    SummaryService,
    render_summary,
    run_cancellable,
    write_summary,
)
from .summaries.types import LENGTH_CHOICES

AUDIO_SUFFIXES = frozenset({".mp3", ".mp4", ".mpeg", ".mpga", ".m4a", ".wav", ".webm", ".ogg", ".flac"})
EXIT_CANCELLED = 130


def is_audio_file(path: Path) -> bool:
    return path.suffix.lower() in AUDIO_SUFFIXES


def read_transcript(candidate: str) -> str:
    if candidate == "-":
        try:
            return sys.stdin.read()
        except UnicodeDecodeError as exc:
            raise InvalidInputError("Transcript on stdin is not valid UTF-8 text") from exc
    path = Path(candidate).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Transcript not found: {candidate}")
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidInputError(f"Transcript is not valid UTF-8 text: {candidate}") from exc


def install_cancel_handler(cancel_event: asyncio.Event) -> bool:
    """Route SIGINT to ``cancel_event``; returns False where signals are unsupported."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        return False
    return True


def build_metadata(
    record: SummaryRecord, options: SummaryOptions, model: str, source: str
) -> dict[str, object]:
    return {
        "model": model,
        "length": options.length,
        "action_items": options.action_items,
        "fingerprint": record.fingerprint,
        "chunk_count": record.chunk_count,
        "source": source,
        "created_at": record.created_at.astimezone(timezone.utc).isoformat(),
    }


async def summarize_inputs(
    service: SummaryService,
    client: OpenAIClient,
    inputs: Sequence[str],
    options: SummaryOptions,
    cancel_event: Optional[asyncio.Event] = None,
) -> list[tuple[str, SummaryRecord]]:
    """Summarize each input in turn; audio inputs are transcribed first."""
    results: list[tuple[str, SummaryRecord]] = []
    for candidate in inputs:
        if candidate != "-" and is_audio_file(Path(candidate)):
            transcript = await run_cancellable(
                client.transcribe(Path(candidate)), cancel_event, "Transcription was cancelled"
            )
        else:
            transcript = read_transcript(candidate)
        record = await service.summarize(transcript, options, cancel_event=cancel_event)
        results.append((candidate, record))
    return results


def _guard_output(parser: argparse.ArgumentParser, output: Optional[Path], force: bool) -> None:
    if output is not None and output.exists() and not force:
        parser.error(f"Refusing to overwrite existing file: {output}. Use --force to overwrite.")


def handle_summarize(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if args.output and len(args.inputs) != 1:
        parser.error("--output requires exactly one input.")
    _guard_output(parser, args.output, args.force)

    settings = Settings.from_env()
    if args.model:
        settings = replace(settings, model=args.model)
    if args.prompts_dir:
        settings = replace(settings, prompts_dir=args.prompts_dir)
    options = SummaryOptions(length=args.length, action_items=not args.no_action_items)

    try:
        service, client = create_summary_service(settings)
    except AuthenticationError as exc:
        parser.error(str(exc))
        return 2

    async def run() -> list[tuple[str, SummaryRecord]]:
        cancel_event = asyncio.Event()
        install_cancel_handler(cancel_event)
        try:
            return await summarize_inputs(service, client, args.inputs, options, cancel_event)
        finally:
            await client.aclose()

    try:
        results = asyncio.run(run())
    except (SummaryCancelledError, KeyboardInterrupt):
        # KeyboardInterrupt only surfaces where install_cancel_handler could not hook SIGINT.
        print("Summary cancelled", file=sys.stderr)
        return EXIT_CANCELLED
    except (FileNotFoundError, PromptValidationError, ProviderError, SummarizerError) as exc:
        parser.error(str(exc))
        return 2

    for source, record in results:
        metadata = None if args.strip_metadata else build_metadata(record, options, settings.model, source)
        status = "cached" if record.cached else "generated"
        if args.output:
            write_summary(args.output, record.body, metadata)
            print(f"[{status}] {source} -> {args.output}", file=sys.stderr)
            continue
        output_text = render_summary(record.body, metadata)
        sys.stdout.write(output_text)
        print(f"[{status}] {source}", file=sys.stderr)
    return 0


def handle_transcribe(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    audio_path = Path(args.audio).expanduser()
    if not audio_path.is_file():
        parser.error(f"Audio file not found: {args.audio}")
    _guard_output(parser, args.output, args.force)

    try:
        client = build_openai_client(Settings.from_env())
    except AuthenticationError as exc:
        parser.error(str(exc))
        return 2

    async def run() -> str:
        async with client:
            return await client.transcribe(audio_path, language=args.language or None)

    try:
        text = asyncio.run(run())
    except KeyboardInterrupt:
        print("Transcription cancelled", file=sys.stderr)
        return EXIT_CANCELLED
    except ProviderError as exc:
        parser.error(str(exc))
        return 2

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text if text.endswith("\n") else f"{text}\n", encoding="utf-8")
        print(f"Wrote transcript to {args.output}", file=sys.stderr)
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")
    return 0


def handle_serve(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    import uvicorn

    from .server import create_app

    settings = Settings.from_env()
    if not settings.api_key:
        parser.error("OpenAI API key not found. Set OPENAI_API_KEY or place a key in ~/.config/openai/key.")
    uvicorn.run(
        create_app(settings=settings),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        log_config=uvicorn_log_config(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="meeting-summarizer",
        description="Summarize meeting transcripts with a chunked map-reduce over an LLM.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING)",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    p_summarize = sub.add_parser("summarize", help="Summarize transcript text files, audio files, or stdin")
    p_summarize.add_argument("inputs", nargs="+", help="Transcript paths, audio paths, or '-' for stdin")
    p_summarize.add_argument(
        "--length",
        choices=LENGTH_CHOICES,
        default="brief",
        help="Bullet-point brief or paragraph-style detailed summary (default: brief)",
    )
    p_summarize.add_argument(
        "--no-action-items",
        action="store_true",
        help="Only highlight decisions; skip action item extraction",
    )
    p_summarize.add_argument("--model", help="Completion model to use (default: $OPENAI_MODEL or gpt-3.5-turbo)")
    p_summarize.add_argument(
        "--prompts-dir",
        type=Path,
        help="Directory with chunk.md/combine.md templates overriding the packaged prompts",
    )
    p_summarize.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write the summary as Markdown with YAML front matter (single input only)",
    )
    p_summarize.add_argument(
        "--strip-metadata",
        action="store_true",
        help="Omit YAML front matter and emit only the Markdown body",
    )
    p_summarize.add_argument("-f", "--force", action="store_true", help="Overwrite output if it exists")

    p_transcribe = sub.add_parser("transcribe", help="Transcribe an audio file via the speech-to-text API")
    p_transcribe.add_argument("audio", help="Path to the audio file")
    p_transcribe.add_argument("--language", default="en", help="Spoken language hint (default: en)")
    p_transcribe.add_argument("-o", "--output", type=Path, help="Write the transcript to this file")
    p_transcribe.add_argument("-f", "--force", action="store_true", help="Overwrite output if it exists")

    p_serve = sub.add_parser("serve", help="Run the HTTP summarize endpoint")
    p_serve.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    p_serve.add_argument("--port", type=int, default=8000, help="Port to bind (default: 8000)")

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.cmd == "summarize":
        return handle_summarize(args, parser)
    if args.cmd == "transcribe":
        return handle_transcribe(args, parser)
    if args.cmd == "serve":
        return handle_serve(args, parser)

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
