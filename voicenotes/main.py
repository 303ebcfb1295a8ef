"""Console entry point for voicenotes."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from .audio.playback_engine import PlaybackEngine
from .audio.recording_engine import RecordingEngine
from .audio.status_pub import StatusPublisher
from .config import VoiceNotesConfig
from .models.session import PlaybackPhase
from .services.session_controller import SessionController
from .storage.catalog_store import CatalogStore, JsonFileKeyValueStore
from .storage.file_manager import FileManager
from .utils.formatting import format_duration, format_size

logger = logging.getLogger(__name__)
console = Console()


def build_controller(config: VoiceNotesConfig, microphone=None, output_factory=None) -> SessionController:
    """Wire storage, devices and engines into a session controller.

    Args:
        config: Application configuration
        microphone: MicrophoneDevice; defaults to the PyAudio microphone
        output_factory: Callable returning an OutputDevice; defaults to PyAudio output
    """
    if microphone is None or output_factory is None:
        from .audio.pyaudio_devices import PyAudioMicrophone, PyAudioOutput
        chunk_size = config.get('audio.chunk_size', 1024)
        microphone = microphone or PyAudioMicrophone()
        output_factory = output_factory or (lambda: PyAudioOutput(chunk_size=chunk_size))

    file_manager = FileManager(config.get_recordings_directory())
    catalog_store = CatalogStore(
        JsonFileKeyValueStore(config.get_index_path()),
        file_manager,
        key=config.get('storage.index_key', 'voice_notes'),
    )
    recording_engine = RecordingEngine(
        microphone,
        file_manager,
        poll_interval=config.get('audio.poll_interval_ms', 100) / 1000,
    )
    playback_engine = PlaybackEngine(
        output_factory,
        StatusPublisher("playback.status"),
        status_interval=config.get('playback.status_interval_ms', 100) / 1000,
    )
    return SessionController(
        catalog_store,
        file_manager,
        recording_engine,
        playback_engine,
        index_write_attempts=config.get('storage.index_write_attempts', 2),
        default_rate=config.get('playback.default_rate', 1.0),
    )


def setup_logging(config: VoiceNotesConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/voicenotes.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("voicenotes starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def render_notes(title: str, notes) -> None:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Duration", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    for note in notes:
        created = note.created_datetime.astimezone().strftime("%b %d, %Y %I:%M %p")
        table.add_row(note.id, note.name, format_duration(note.duration_ms),
                      format_size(note.size_bytes), created)
    console.print(table)


async def run_command(args: argparse.Namespace, controller: SessionController) -> int:
    if not await controller.initialize():
        console.print(f"[red]Error:[/red] {controller.error}")
        return 1

    try:
        if args.command == "list":
            if args.history:
                render_notes("History", controller.history_notes(args.query or ""))
            else:
                render_notes("Recent", controller.recent_notes(args.query or ""))

        elif args.command == "record":
            if not await controller.start_recording():
                console.print(f"[red]Error:[/red] {controller.error}")
                return 1
            try:
                with console.status("Recording...") as status:
                    remaining = args.duration
                    while remaining > 0:
                        await asyncio.sleep(min(0.5, remaining))
                        remaining -= 0.5
                        status.update(f"Recording... {format_duration(controller.recording.elapsed_ms)}")
            except (KeyboardInterrupt, asyncio.CancelledError):
                await controller.cancel_recording()
                console.print("Recording discarded")
                return 1
            note = await controller.stop_recording(args.name)
            if note is None:
                console.print(f"[red]Error:[/red] {controller.error}")
                return 1
            console.print(f"Saved [bold]{note.name}[/bold] ({format_duration(note.duration_ms)}) as {note.id}")

        elif args.command == "play":
            if args.rate != 1.0 and not await controller.set_playback_rate(args.rate):
                console.print(f"[red]Error:[/red] {controller.error}")
                return 1
            if not await controller.play_note(args.note_id):
                console.print(f"[red]Error:[/red] {controller.error}")
                return 1
            with console.status("Playing...") as status:
                while controller.playback.phase != PlaybackPhase.STOPPED:
                    await asyncio.sleep(0.25)
                    status.update(f"Playing... {format_duration(controller.playback.position_ms)}"
                                  f" / {format_duration(controller.playback.duration_ms)}")

        elif args.command == "rename":
            if not await controller.rename_note(args.note_id, args.name):
                console.print(f"[red]Error:[/red] {controller.error or 'Voice note not found'}")
                return 1

        elif args.command == "delete":
            note = controller.get_note(args.note_id)
            if note is None:
                console.print("[red]Error:[/red] Voice note not found")
                return 1
            if not args.yes and not Confirm.ask(f"Delete '{note.name}'? This cannot be undone"):
                return 0
            if not await controller.delete_note(args.note_id):
                console.print(f"[red]Error:[/red] {controller.error}")
                return 1

        elif args.command == "stats":
            stats = controller.file_manager.get_storage_stats()
            orphans = controller.file_manager.find_orphans(n.location for n in controller.notes)
            console.print(f"Notes: {len(controller.notes)}")
            console.print(f"Files: {stats['audio_files']} ({stats['total_size_mb']} MB) in {stats['recordings_directory']}")
            if orphans:
                console.print(f"[yellow]Files without a catalog entry:[/yellow] {len(orphans)}")

        return 1 if controller.error else 0
    finally:
        await controller.shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="voicenotes - local voice memos")

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in settings)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="voicenotes v0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List voice notes")
    list_parser.add_argument("--history", action="store_true", help="Show notes older than 7 days")
    list_parser.add_argument("--query", type=str, help="Filter by name")

    record_parser = subparsers.add_parser("record", help="Record a new voice note")
    record_parser.add_argument("--duration", type=float, default=10, help="Seconds to record (default: 10)")
    record_parser.add_argument("--name", type=str, help="Name for the note")

    play_parser = subparsers.add_parser("play", help="Play a voice note")
    play_parser.add_argument("note_id")
    play_parser.add_argument("--rate", type=float, default=1.0, help="Playback speed multiplier")

    rename_parser = subparsers.add_parser("rename", help="Rename a voice note")
    rename_parser.add_argument("note_id")
    rename_parser.add_argument("name")

    delete_parser = subparsers.add_parser("delete", help="Delete a voice note")
    delete_parser.add_argument("note_id")
    delete_parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    subparsers.add_parser("stats", help="Show storage usage")

    return parser


def main(argv: Optional[list] = None) -> None:
    """Main entry point for voicenotes."""
    args = build_parser().parse_args(argv)

    try:
        config = VoiceNotesConfig(args.config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

    try:
        controller = build_controller(config)
        exit_code = asyncio.run(run_command(args, controller))
    except KeyboardInterrupt:
        console.print("\nGoodbye!")
        exit_code = 0
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        logging.error(f"Application error: {e}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
