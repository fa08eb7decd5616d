"""
Queue Player - Command Line Entry Point

Plays local audio files as a queue, honouring shuffle, repeat and volume.
"""

import argparse
import logging
import signal
import sys
import os

# Add src to path
src_path = os.path.dirname(os.path.abspath(__file__))
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from PyQt6.QtCore import QCoreApplication, QTimer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Play audio files as a queue")
    parser.add_argument("files", nargs="+", help="Audio files to queue")
    parser.add_argument("--config", default=None, help="Path to a YAML configuration file")
    parser.add_argument("--backend", default=None, help="Audio backend (pygame, null)")
    parser.add_argument("--shuffle", action="store_true", help="Enable shuffle")
    parser.add_argument(
        "--repeat", choices=["none", "all", "one"], default="none", help="Repeat mode"
    )
    parser.add_argument("--volume", type=float, default=None, help="Volume between 0.0 and 1.0")
    parser.add_argument("--log-level", default=None, help="Logging level (overrides config)")
    return parser


def _log_level(name) -> int:
    level = getattr(logging, str(name).upper(), None)
    return level if isinstance(level, int) else logging.INFO


def main(argv=None) -> int:
    """Application entry point"""
    args = build_parser().parse_args(argv)

    from app.container_factory import AppContainerFactory
    from app.device_poller import DevicePoller
    from app.events import EventType
    from services.player_service import RepeatMode

    logging.basicConfig(
        level=_log_level(args.log_level or "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName("Queue Player")

    container = AppContainerFactory.create(config_path=args.config, backend=args.backend)

    # --log-level wins over logging.level from the configuration file
    if not args.log_level:
        logging.getLogger().setLevel(_log_level(container.config.get("logging.level", "INFO")))

    player = container.player
    tracks = container.importer.from_paths(args.files)
    if not tracks:
        logger.error("No playable files given")
        container.cleanup()
        return 1

    player.add_tracks(tracks)
    player.set_shuffle(args.shuffle)
    player.set_repeat_mode(RepeatMode(args.repeat))
    if args.volume is not None:
        player.set_volume(args.volume)

    def on_stopped(data):
        if data and data.get("reason") == "queue_finished":
            app.quit()

    def on_failed(failure):
        logger.error("Could not play %s: %s", failure.track.display_name, failure.error)

    container.event_bus.subscribe(EventType.PLAYBACK_STOPPED, on_stopped)
    container.event_bus.subscribe(EventType.PLAYBACK_FAILED, on_failed)

    poller = DevicePoller(
        container.device,
        interval_ms=container.config.get("audio.poll_interval_ms", 250),
    )
    poller.start()

    # Ctrl+C: let Python see the signal between timer ticks
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    keepalive = QTimer()
    keepalive.timeout.connect(lambda: None)
    keepalive.start(200)

    player.play()
    try:
        return app.exec()
    finally:
        poller.stop()
        container.cleanup()


if __name__ == "__main__":
    sys.exit(main())
