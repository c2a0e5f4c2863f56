"""Classification of image layer tar entries into Lambda archive destinations."""

import enum
import posixpath
import tarfile
from dataclasses import dataclass, field

from ..exceptions import UnsupportedEntryTypeError

WHITEOUT_PREFIX = ".wh."


class Destination(enum.Enum):
    """Output archive an entry can be written to."""

    LAYER = "layer"
    FUNCTION = "function"


class Kind(enum.Enum):
    """Summary of how many destinations an entry was classified into."""

    IRRELEVANT = "irrelevant"
    LAYER = "layer"
    FUNCTION = "function"
    BOTH = "both"


# Lambda mounts layers at /opt and deployment packages at /var/task
DESTINATION_PREFIXES = (
    (Destination.LAYER, "opt/"),
    (Destination.FUNCTION, "var/task/"),
)

REPACKABLE_TYPES = frozenset(
    tarfile.REGULAR_TYPES
    + (
        tarfile.LNKTYPE,
        tarfile.SYMTYPE,
        tarfile.CHRTYPE,
        tarfile.BLKTYPE,
        tarfile.FIFOTYPE,
    )
)


@dataclass(frozen=True)
class Classification:
    """Where a tar entry goes and under which name.

    ``targets`` maps every matching destination to the entry's path inside
    that destination's archive. An empty mapping means the entry is skipped.
    """

    targets: dict[Destination, str] = field(default_factory=dict)

    @property
    def kind(self) -> Kind:
        if not self.targets:
            return Kind.IRRELEVANT
        if len(self.targets) > 1:
            return Kind.BOTH
        if Destination.LAYER in self.targets:
            return Kind.LAYER
        return Kind.FUNCTION

    @property
    def is_relevant(self) -> bool:
        return bool(self.targets)


IRRELEVANT = Classification()


def normalize_entry_name(name: str) -> str:
    """Strip leading "./" and "/" from a tar entry name."""
    while name.startswith("./"):
        name = name[2:]
    return name.lstrip("/")


def is_whiteout(name: str) -> bool:
    """Check if the entry is an overlay filesystem whiteout marker."""
    return posixpath.basename(name.rstrip("/")).startswith(WHITEOUT_PREFIX)


def match_destinations(name: str) -> dict[Destination, str]:
    """Match a normalized entry name against every destination prefix."""
    targets = {}
    for destination, prefix in DESTINATION_PREFIXES:
        if name.startswith(prefix) and len(name) > len(prefix):
            targets[destination] = name[len(prefix) :]
    return targets


def classify(member: tarfile.TarInfo) -> Classification:
    """Decide which Lambda archives a tar entry belongs to.

    Args:
        member: Tar entry from an image layer

    Returns:
        Classification with the rewritten path per destination

    Raises:
        UnsupportedEntryTypeError: If the entry matches a destination but its
            type cannot be stored in a zip archive
    """
    if member.isdir() or member.type == tarfile.XGLTYPE:
        return IRRELEVANT

    if is_whiteout(member.name):
        return IRRELEVANT

    targets = match_destinations(normalize_entry_name(member.name))
    if not targets:
        return IRRELEVANT

    if member.type not in REPACKABLE_TYPES:
        raise UnsupportedEntryTypeError(member.name, member.type)

    return Classification(targets)
