"""Raster renderer for the card scene.

The widget never moves a card. It listens to the choreographer's
``frameAdvanced`` signal, reads the current card transforms from the registry
and paints them back to front with :class:`QtGui.QPainter`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Mapping, Optional

from PyQt5 import QtCore, QtGui, QtWidgets

from ..cards import Card
from ..config import setting_float, setting_str
from ..lifecycle import DrawEngine
from ..projection import project
from ..state import LotteryStatus, StatusChange

__all__ = ["StageViewWidget", "RenderItem"]

_STATUS_LABELS = {
    LotteryStatus.INIT: "Registration open",
    LotteryStatus.READY: "Ready",
    LotteryStatus.RUNNING: "Drawing...",
    LotteryStatus.END: "Winners",
}


@dataclass
class RenderItem:
    """A card projected on screen."""

    card: Card
    sx: float
    sy: float
    width: float
    height: float
    depth: float
    facing: float


class StageViewWidget(QtWidgets.QWidget):
    """Paints the cards of ``engine`` and a one-line status banner."""

    def __init__(self, engine: DrawEngine, parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        self.engine = engine
        self.setAttribute(QtCore.Qt.WA_OpaquePaintEvent, True)
        self.setFocusPolicy(QtCore.Qt.StrongFocus)
        self._message = ""
        self._message_timer = QtCore.QTimer(self)
        self._message_timer.setSingleShot(True)
        self._message_timer.timeout.connect(self._clear_message)
        self._colors = self._load_colors(engine.settings)
        engine.choreographer.frameAdvanced.connect(self.update)
        engine.ambient.reshuffled.connect(self.update)
        engine.statusChanged.connect(self._on_status)
        engine.notice.connect(self.show_message)
        engine.guardFailed.connect(lambda error: self.show_message(str(error)))

    @staticmethod
    def _load_colors(settings: Mapping[str, object]) -> Mapping[str, QtGui.QColor]:
        return {
            key: QtGui.QColor(setting_str(settings, "appearance", key))
            for key in ("cardColor", "luckyColor", "textColor", "background")
        }

    # ------------------------------------------------------------------ banner
    def show_message(self, message: str, timeout_ms: int = 4000) -> None:
        self._message = message
        self._message_timer.start(max(0, int(timeout_ms)))
        self.update()

    def _clear_message(self) -> None:
        self._message = ""
        self.update()

    def _on_status(self, change: StatusChange) -> None:
        del change
        self.update()

    # ------------------------------------------------------------------ layout
    def render_items(self) -> List[RenderItem]:
        """Project every card; farthest first."""

        settings = self.engine.settings
        width = max(1, self.width())
        height = max(1, self.height())
        camera_z = setting_float(settings, "camera", "cameraZ")
        fov = setting_float(settings, "camera", "fovDeg")
        card_w = setting_float(settings, "layout", "cardWidth")
        card_h = setting_float(settings, "layout", "cardHeight")
        scene_rotation = self.engine.choreographer.scene_rotation

        items: List[RenderItem] = []
        for card in self.engine.registry:
            projected = project(card.position, scene_rotation, width, height, camera_z, fov)
            if projected is None:
                continue
            # Cards turned edge-on shrink horizontally.
            facing = math.cos(card.rotation.y + scene_rotation) * math.cos(card.rotation.x)
            size = projected.scale * card.scale
            items.append(
                RenderItem(
                    card=card,
                    sx=projected.x,
                    sy=projected.y,
                    width=card_w * size * max(0.12, abs(facing)),
                    height=card_h * size,
                    depth=projected.depth,
                    facing=facing,
                )
            )
        items.sort(key=lambda item: item.depth, reverse=True)
        return items

    # ------------------------------------------------------------------ painting
    def _paint_card(self, painter: QtGui.QPainter, item: RenderItem) -> None:
        skin = item.card.skin
        lucky = skin is not None and skin.mode == "lucky"
        base = QtGui.QColor(self._colors["luckyColor" if lucky else "cardColor"])
        border = QtGui.QColor(base)
        base.setAlphaF(0.55 if lucky else (0.25 if item.facing >= 0 else 0.12))
        rect = QtCore.QRectF(
            item.sx - item.width / 2.0, item.sy - item.height / 2.0, item.width, item.height
        )
        painter.setPen(QtGui.QPen(border, 1.0))
        painter.setBrush(base)
        painter.drawRoundedRect(rect, 4.0, 4.0)

        if skin is None or item.height < 12 or item.width < 16:
            return
        text = QtGui.QColor(self._colors["textColor"])
        font = painter.font()
        font.setPixelSize(max(6, int(item.height * 0.14)))
        painter.setFont(font)
        painter.setPen(text)
        painter.drawText(rect, QtCore.Qt.AlignCenter, skin.participant.name)
        if skin.participant.phone:
            font.setPixelSize(max(5, int(item.height * 0.08)))
            painter.setFont(font)
            lower = QtCore.QRectF(rect.left(), rect.top() + rect.height() * 0.6,
                                  rect.width(), rect.height() * 0.35)
            painter.drawText(lower, QtCore.Qt.AlignCenter, skin.participant.phone)

    def _paint_banner(self, painter: QtGui.QPainter) -> None:
        prize = self.engine.store.current_prize
        parts = [_STATUS_LABELS.get(self.engine.status, "")]
        if prize is not None:
            parts.append(f"{prize.name} {prize.used_count}/{prize.count}")
        parts.append(f"{len(self.engine.registry)} participants")
        if self._message:
            parts.append(self._message)
        painter.setPen(self._colors["textColor"])
        font = painter.font()
        font.setPixelSize(16)
        painter.setFont(font)
        painter.drawText(
            QtCore.QRectF(12, 8, max(1, self.width() - 24), 24),
            QtCore.Qt.AlignLeft | QtCore.Qt.AlignVCenter,
            "  |  ".join(part for part in parts if part),
        )

    def _render_with_painter(self, painter: QtGui.QPainter) -> None:
        painter.setRenderHint(QtGui.QPainter.Antialiasing, True)
        painter.setRenderHint(QtGui.QPainter.TextAntialiasing, True)
        painter.fillRect(self.rect(), self._colors["background"])
        for item in self.render_items():
            self._paint_card(painter, item)
        self._paint_banner(painter)

    def paintEvent(self, event: QtGui.QPaintEvent) -> None:  # type: ignore[override]
        del event
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()

    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self.update()
