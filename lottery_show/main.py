"""Application entry point: window, store, engine and live feed."""

from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path
from typing import List, NoReturn, Optional, Sequence, cast


def _handle_qt_import_error(exc: ImportError) -> NoReturn:
    """Exit with a helpful message when the Qt bindings cannot be imported."""

    details = str(exc)
    message_lines = [
        "Unable to start the lottery show: importing PyQt5 failed.",
        "Check that PyQt5 is installed together with its QtWebSockets module.",
    ]
    if "libGL.so.1" in details:
        message_lines.append(
            "Hint: the system library libGL.so.1 is missing. Install the Mesa/OpenGL packages."
        )
    message_lines.append(f"Original error: {details}")
    raise SystemExit("\n".join(message_lines)) from exc


try:
    from PyQt5 import QtCore, QtGui, QtWidgets
    from PyQt5.QtCore import Qt
except ImportError as exc:  # pragma: no cover - environment dependent
    _handle_qt_import_error(exc)

from .config import load_settings, setting_int, setting_str
from .demo import demo_store
from .feed import LiveFeedClient, feed_url
from .lifecycle import DrawEngine
from .store import DrawStore, JsonStore
from .view import StageViewWidget

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_OPERATOR_KEYS = {
    Qt.Key_Space: "space",
    Qt.Key_Escape: "escape",
    Qt.Key_B: "b",
}


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the ``lottery_show`` logger for console and optional file output."""

    root = logging.getLogger("lottery_show")
    root.setLevel(level)
    root.handlers.clear()
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(console)
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
        ))
        root.addHandler(file_handler)
    return root


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lottery-show",
        description="3D lottery show: registrations, draws and winner reveal.",
    )
    parser.add_argument("--config", help="JSON settings file merged over the defaults.")
    parser.add_argument("--data-dir", help="Directory holding participants.json, prizes.json and wins.json.")
    parser.add_argument("--feed-url", help="WebSocket endpoint of the registration feed.")
    parser.add_argument("--feed-host", metavar="HOST[:PORT]", help="Registration server; the feed is read from /api/ws on it.")
    parser.add_argument("--no-feed", action="store_true", help="Do not connect to the registration feed.")
    parser.add_argument(
        "--demo",
        type=int,
        default=0,
        metavar="N",
        help="Run in memory with N random participants and demo prizes.",
    )
    parser.add_argument("--seed", type=int, help="Seed of the random generator.")
    parser.add_argument("--log-file", help="Also write logs to this file.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args(list(argv))


def build_store(args: argparse.Namespace, rng: random.Random) -> DrawStore:
    if args.demo > 0:
        logger.info("Demo mode with %d participant(s)", args.demo)
        return demo_store(args.demo, rng)
    return JsonStore(args.data_dir)


class StageWindow(QtWidgets.QMainWindow):
    """Main window hosting the stage and mapping the operator's keys."""

    def __init__(self, engine: DrawEngine, screen: Optional[QtGui.QScreen] = None):
        super().__init__(None)
        self.engine = engine
        self.setWindowTitle("Lottery show")
        self.view = StageViewWidget(engine, self)
        self.setCentralWidget(self.view)
        self.view.installEventFilter(self)
        QtWidgets.QShortcut(QtGui.QKeySequence("Ctrl+Q"), self, activated=self.close)
        QtWidgets.QShortcut(Qt.Key_F11, self, activated=self._toggle_fullscreen)
        if screen is not None:
            self._apply_screen_geometry(screen)

    def _apply_screen_geometry(self, screen: QtGui.QScreen) -> None:
        geometry = screen.geometry()
        width = int(geometry.width() * 0.8)
        height = int(geometry.height() * 0.8)
        left = geometry.left() + (geometry.width() - width) // 2
        top = geometry.top() + (geometry.height() - height) // 2
        self.setGeometry(left, top, width, height)

    def _toggle_fullscreen(self) -> None:
        if self.isFullScreen():
            self.showNormal()
        else:
            self.showFullScreen()

    def _select_prize_key(self, key: int) -> bool:
        if not Qt.Key_1 <= key <= Qt.Key_9:
            return False
        index = key - Qt.Key_1
        prizes = self.engine.store.prizes
        if index >= len(prizes):
            return False
        return self.engine.select_prize(prizes[index].id)

    def handle_key(self, key: int) -> bool:
        name = _OPERATOR_KEYS.get(key)
        if name is not None:
            self.engine.handle_operator_key(name)
            return True
        return self._select_prize_key(key)

    def eventFilter(self, watched: QtCore.QObject, event: QtCore.QEvent) -> bool:
        if watched is self.view and event.type() == QtCore.QEvent.KeyPress:
            key_event = cast(QtGui.QKeyEvent, event)
            if not key_event.isAutoRepeat() and self.handle_key(key_event.key()):
                return True
        return super().eventFilter(watched, event)

    def keyPressEvent(self, event: QtGui.QKeyEvent) -> None:  # type: ignore[override]
        if event.isAutoRepeat() or not self.handle_key(event.key()):
            super().keyPressEvent(event)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self.engine.teardown()
        super().closeEvent(event)


def main(argv: Optional[List[str]] = None, headless: bool = False) -> int:
    """Start the application and return the exit code.

    With ``headless`` the arguments are parsed and the store and engine are
    built, but no window is opened and the event loop is not started.
    """

    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(logging.DEBUG if args.debug else logging.INFO, args.log_file)
    settings = load_settings(args.config)
    rng = random.Random(args.seed)

    if headless:
        app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    else:
        QtWidgets.QApplication.setAttribute(QtCore.Qt.AA_EnableHighDpiScaling, True)
        app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv)

    store = build_store(args, rng)
    engine = DrawEngine(store, settings, rng=rng)
    logger.info(
        "Loaded %d participant(s) and %d prize(s)", len(store.participants), len(store.prizes)
    )
    if headless:
        engine.teardown()
        return 0

    if not args.no_feed:
        feed = LiveFeedClient(
            engine.live_merge,
            reconnect_ms=setting_int(settings, "feed", "reconnectMs"),
            parent=engine,
        )
        engine.add_teardown_hook(feed.close)
        url = args.feed_url
        if not url and args.feed_host:
            url = feed_url(args.feed_host)
        feed.open(url or setting_str(settings, "feed", "url"))

    window = StageWindow(engine, QtGui.QGuiApplication.primaryScreen())
    window.show()
    window.view.setFocus()
    engine.boot()
    return app.exec_()


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
