"""Turn a decoded input frame into a 1-bit image.

Order: invert (if requested), then pass 1-bit sources through, otherwise
dither or threshold depending on the run settings.
"""

from __future__ import annotations

import logging

from PIL import Image

from . import dither as binarize
from .options import PreprocessSettings

log = logging.getLogger(__name__)


def make_monochrome(image: Image.Image, settings: PreprocessSettings) -> Image.Image | None:
    """Return a new mode "1" image, or ``None`` if the conversion produced nothing.

    The caller's ``image`` is left usable and must still be closed by the caller.
    """
    source = binarize.invert(image) if settings.invert else image

    if source.mode == "1":
        # Already 1bpp: don't re-binarise, hand back a copy.
        result = source.copy() if source is image else source
    elif settings.dither is not None:
        result = binarize.dither(source, settings.dither)
    else:
        result = binarize.threshold(source, settings.threshold)

    if result is None or result.mode != "1":
        log.debug("1-bit conversion of %s image gave no usable result", image.mode)
        return None
    return result


def describe(settings: PreprocessSettings) -> tuple[str, str]:
    """(label, value) pair for the run summary."""
    if settings.dither is not None:
        return "Dithering", settings.dither.display_name
    return "Threshold", str(settings.threshold)
