"""Image loader for the LC-3 VM.

Image format (big-endian):
    word 0      origin address
    word 1..N   cell values, stored at origin, origin + 1, ...

At most 65536 - origin words are loaded; the rest are ignored, as is a
trailing odd byte. Loading several images overlays them in order.
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple, Union

from .errors import ImageLoadError
from .state import MachineState, MEMORY_SIZE


logger = logging.getLogger(__name__)


@dataclass
class LoadedImage:
    """Where an image ended up in memory.

    Attributes:
        path: Source of the image
        origin: First address written
        word_count: Number of words stored
    """
    path: str
    origin: int
    word_count: int


def parse_image(data: bytes, path: str = "<bytes>") -> Tuple[int, List[int]]:
    """Split raw image bytes into origin and words.

    Raises:
        ImageLoadError: If the data is too short to hold an origin
    """
    if len(data) < 2:
        raise ImageLoadError(path, "image is shorter than its origin word")

    (origin,) = struct.unpack(">H", data[:2])
    body = data[2:]
    count = min(len(body) // 2, MEMORY_SIZE - origin)
    words = list(struct.unpack(f">{count}H", body[:count * 2]))
    return origin, words


def load_image_bytes(state: MachineState, data: bytes, path: str = "<bytes>") -> LoadedImage:
    """Load an in-memory image into state's address space.

    Args:
        state: Machine to load into
        data: Raw image bytes
        path: Label used in errors and logs

    Returns:
        LoadedImage describing the loaded range
    """
    origin, words = parse_image(data, path)
    count = state.load_words(origin, words)
    logger.debug("loaded %s: %d words at 0x%04X", path, count, origin)
    return LoadedImage(path=path, origin=origin, word_count=count)


def load_image(state: MachineState, path: Union[str, Path]) -> LoadedImage:
    """Read an image file and load it into state's address space.

    Args:
        state: Machine to load into
        path: Image file path

    Returns:
        LoadedImage describing the loaded range

    Raises:
        ImageLoadError: If the file cannot be read or is malformed
    """
    path = str(path)
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ImageLoadError(path, e.strerror or str(e)) from e
    return load_image_bytes(state, data, path)
