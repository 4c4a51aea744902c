"""
Application settings using Pydantic.

Settings are loaded from environment variables with .env file support.
Nested sections use a double underscore, e.g.
``PRINTBRIDGE_ESCPOS__BAUDRATE=19200``.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DefaultsSettings(BaseModel):
    """Print option defaults applied when a request leaves them out."""

    paper_size: str = "80mm"
    font_size: int = Field(default=12, ge=1)
    font_scale: float = Field(default=1.0, gt=0.0)
    copies: int = Field(default=1, ge=1)
    silent: bool = True


class EscPosSettings(BaseModel):
    """Direct-write thermal printer settings."""

    # Printer name -> device path (/dev/usb/lp0, /dev/ttyUSB0, COM3, ...)
    devices: dict[str, str] = Field(default_factory=dict)
    auto_detect: bool = True

    # Serial ports
    baudrate: int = 9600
    timeout: float = 2.0

    # Python codec name used for text bytes, and the ESC t table selecting it
    codepage: str = "cp437"
    codepage_table: int = 0

    # Writes are chunked to avoid overflowing small printer buffers
    chunk_size: int = 256
    feed_lines: int = 3


class DialogSettings(BaseModel):
    """Print-dialog (driver based) printing settings."""

    # Command run for silent jobs; {printer}, {copies} and {file} are substituted
    print_command: list[str] = Field(
        default_factory=lambda: ["lp", "-d", "{printer}", "-n", "{copies}", "{file}"]
    )
    timeout: float = 60.0
    # Seconds an interactive job keeps its file for the browser
    keep_seconds: float = 300.0


class FontSettings(BaseModel):
    """Typeface assets embedded in markup output."""

    fonts_path: Path = Field(default_factory=lambda: Path(__file__).parent.parent / "assets" / "fonts")
    family: str = "Roboto Mono"
    regular_file: str = "roboto-mono-latin-400-normal.woff2"
    bold_file: str = "roboto-mono-latin-700-normal.woff2"


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="PRINTBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    backend: Literal["dialog", "escpos", "mock"] = "dialog"
    debug: bool = False

    # Nested settings
    defaults: DefaultsSettings = Field(default_factory=DefaultsSettings)
    escpos: EscPosSettings = Field(default_factory=EscPosSettings)
    dialog: DialogSettings = Field(default_factory=DialogSettings)
    fonts: FontSettings = Field(default_factory=FontSettings)

    @property
    def is_mock(self) -> bool:
        """Check if printing is simulated."""
        return self.backend == "mock"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
