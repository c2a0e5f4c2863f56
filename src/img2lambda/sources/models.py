"""Data models for image sources."""

from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Protocol


@dataclass
class SourceLayer:
    """One image layer blob, lowest layer first.

    ``open_stream`` returns a fresh stream of the raw blob on every call.
    """

    digest: str
    open_stream: Callable[[], BinaryIO] = field(repr=False)
    size: int | None = None
    media_type: str | None = None


class ImageSource(Protocol):
    """An opened container image whose layers can be read in order."""

    name: str

    @property
    def layers(self) -> list[SourceLayer]: ...
