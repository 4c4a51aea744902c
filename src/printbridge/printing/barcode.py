"""Barcode encoding for receipt documents.

Linear symbologies are encoded with python-barcode (module patterns only,
no writer) and drawn with Pillow so both backends get the same 1-bit
raster. MSI and Pharmacode are not covered by python-barcode and are
built from their module patterns here.

Any failure is reported as EncoderFailure; renderers fall back to
printing the literal value.
"""

import logging
from typing import List

import barcode
from PIL import Image

from printbridge.core.errors import EncoderFailure
from printbridge.printing.document import BarcodeType

logger = logging.getLogger(__name__)

DEFAULT_HEIGHT = 50

# Symbology -> (python-barcode name, constructor options)
_PYTHON_BARCODE = {
    BarcodeType.CODE128: ("code128", {}),
    BarcodeType.EAN13: ("ean13", {}),
    BarcodeType.EAN8: ("ean8", {}),
    BarcodeType.UPC: ("upca", {}),
    BarcodeType.CODE39: ("code39", {"add_checksum": False}),
    BarcodeType.ITF14: ("itf", {}),
}

PHARMACODE_MIN = 3
PHARMACODE_MAX = 131070


def gs1_check_digit(digits: str) -> str:
    """GS1 mod-10 check digit for a string of digits."""
    total = 0
    for position, char in enumerate(reversed(digits)):
        weight = 3 if position % 2 == 0 else 1
        total += int(char) * weight
    return str((10 - total % 10) % 10)


def msi_modules(value: str) -> str:
    """MSI (plain, no check digit) module pattern."""
    if not value or not value.isdigit():
        raise EncoderFailure(f"MSI accepts digits only, got {value!r}")
    modules = "110"
    for char in value:
        for bit in format(int(char), "04b"):
            modules += "110" if bit == "1" else "100"
    return modules + "1001"


def pharmacode_modules(value: str) -> str:
    """Pharmacode (one-track) module pattern."""
    try:
        number = int(value)
    except ValueError:
        raise EncoderFailure(f"Pharmacode accepts an integer, got {value!r}") from None
    if not PHARMACODE_MIN <= number <= PHARMACODE_MAX:
        raise EncoderFailure(
            f"Pharmacode value must be between {PHARMACODE_MIN} and {PHARMACODE_MAX}"
        )

    modules = ""
    while number:
        if number % 2 == 0:
            modules = "11100" + modules
            number = (number - 2) // 2
        else:
            modules = "100" + modules
            number = (number - 1) // 2
    # Drop the trailing gap
    return modules[:-2]


class BarcodeEncoder:
    """Encodes barcode values into black-on-white 1-bit images.

    Stateless; one instance can serve any number of renders.
    """

    def modules(self, value: str, symbology: BarcodeType) -> str:
        """Module pattern for a value, ``"1"`` = bar, ``"0"`` = space.

        Raises:
            EncoderFailure: If the value is not valid for the symbology
        """
        symbology = BarcodeType(symbology)

        if symbology == BarcodeType.MSI:
            return msi_modules(value)
        if symbology == BarcodeType.PHARMACODE:
            return pharmacode_modules(value)

        name, options = _PYTHON_BARCODE[symbology]
        code = value
        if symbology == BarcodeType.ITF14:
            if not value.isdigit() or len(value) not in (13, 14):
                raise EncoderFailure(f"ITF-14 needs 13 or 14 digits, got {value!r}")
            if len(value) == 13:
                code = value + gs1_check_digit(value)

        try:
            encoded = barcode.get_barcode_class(name)(code, **options)
            lines: List[str] = encoded.build()
        except Exception as e:
            raise EncoderFailure(f"Cannot encode {value!r} as {symbology.value}", e) from e

        pattern = "".join(lines)
        return "".join("0" if char == "0" else "1" for char in pattern)

    def encode(
        self,
        value: str,
        symbology: BarcodeType = BarcodeType.CODE128,
        width: int = 200,
        height: int = DEFAULT_HEIGHT,
    ) -> Image.Image:
        """Encode a value as a 1-bit barcode image.

        Bars are drawn on whole pixels: each module is ``width // modules``
        pixels wide (at least one), so the image can be narrower than
        ``width`` but never blurs.

        Args:
            value: Data to encode
            symbology: Barcode type
            width: Target width in pixels
            height: Bar height in pixels

        Returns:
            Mode "1" PIL image, black bars on white

        Raises:
            EncoderFailure: If encoding fails
        """
        if not value:
            raise EncoderFailure("Barcode value is empty")

        modules = self.modules(value, symbology)
        if "1" not in modules:
            raise EncoderFailure(f"Empty pattern for {value!r}")

        module_px = max(1, width // len(modules))
        height = max(1, height)

        strip = Image.new("1", (len(modules), 1), 1)
        strip.putdata([0 if module == "1" else 1 for module in modules])
        img = strip.resize((len(modules) * module_px, height), Image.Resampling.NEAREST)

        logger.debug(
            f"Encoded {BarcodeType(symbology).value} barcode: {len(modules)} modules, {img.width}x{img.height}px"
        )
        return img
