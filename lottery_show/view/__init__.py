from .view_widget import RenderItem, StageViewWidget

__all__ = ["RenderItem", "StageViewWidget"]
