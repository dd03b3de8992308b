from liveclass.core.models.live_class import LiveClass

__all__ = [
    "LiveClass",
]
