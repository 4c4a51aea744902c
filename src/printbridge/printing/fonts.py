"""Typeface assets for markup output.

The monospace receipt font is read from disk once, on first use, and kept
by the FontCache instance that owns it. Renderers receive the cache
explicitly; there is no module-level font state.
"""

import base64
import logging
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

FALLBACK_FAMILIES = "'Courier New', Courier, monospace"


class FontCache:
    """Lazily loaded, base64-encoded WOFF2 font faces.

    Args:
        fonts_path: Directory holding the font files
        family: CSS font family name
        files: Mapping of CSS font weight to file name
    """

    def __init__(
        self,
        fonts_path: Path,
        family: str = "Roboto Mono",
        files: Optional[Dict[int, str]] = None,
    ) -> None:
        self._fonts_path = Path(fonts_path)
        self._family = family
        self._files = files or {
            400: "roboto-mono-latin-400-normal.woff2",
            700: "roboto-mono-latin-700-normal.woff2",
        }
        self._faces: Optional[Dict[int, str]] = None

    @classmethod
    def from_settings(cls, settings) -> "FontCache":
        """Create a cache from FontSettings."""
        return cls(
            fonts_path=settings.fonts_path,
            family=settings.family,
            files={400: settings.regular_file, 700: settings.bold_file},
        )

    @property
    def family(self) -> str:
        return self._family

    @property
    def font_stack(self) -> str:
        """CSS font-family value with fallbacks."""
        return f"'{self._family}', {FALLBACK_FAMILIES}"

    def _load(self) -> Dict[int, str]:
        faces: Dict[int, str] = {}
        logger.info(f"Loading fonts from {self._fonts_path}")

        for weight, filename in sorted(self._files.items()):
            path = self._fonts_path / filename
            if not path.is_file():
                logger.warning(f"Font file missing: {path}")
                continue
            try:
                faces[weight] = base64.b64encode(path.read_bytes()).decode("ascii")
            except OSError as e:
                logger.error(f"Failed to read font {path}: {e}")
                continue
            logger.debug(f"Font {weight} loaded, {len(faces[weight])} chars")

        return faces

    @property
    def faces(self) -> Dict[int, str]:
        """Weight -> base64 font data, loaded on first access."""
        if self._faces is None:
            self._faces = self._load()
        return self._faces

    def font_face_css(self) -> str:
        """``@font-face`` rules for every font that could be loaded."""
        rules = []
        for weight, data in sorted(self.faces.items()):
            rules.append(
                "@font-face {\n"
                f"  font-family: '{self._family}';\n"
                "  font-style: normal;\n"
                f"  font-weight: {weight};\n"
                f"  src: url(data:font/woff2;base64,{data}) format('woff2');\n"
                "}"
            )
        return "\n".join(rules)
