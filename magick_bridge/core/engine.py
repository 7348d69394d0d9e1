"""
Engine process state - one-time initialization and teardown of the imaging engine.

The engine must be initialized once before any image handle is created.
Initialization registers the codec plugins, builds the format registry and
resolves configuration search paths under a working directory.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Tuple, Union

from PIL import Image

from magick_bridge.core.constants import EngineConstants
from magick_bridge.core.enums import EngineState
from magick_bridge.core.exceptions import EngineStateError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MagickInfo:
    """Format registry entry"""

    name: str
    extensions: Tuple[str, ...]
    decoder: bool
    encoder: bool
    mime_type: Optional[str] = None

    @property
    def blob_support(self) -> bool:
        """Whether images of this format can be decoded from memory."""
        return self.decoder


class MagickEngine:
    """Process-wide engine lifecycle: uninitialized -> ready -> shut down"""

    def __init__(self):
        self.state = EngineState.UNINITIALIZED
        self.working_directory: Optional[Path] = None
        self.config_paths: List[Path] = []
        self.max_image_pixels: Optional[int] = None
        self._formats: Dict[str, MagickInfo] = {}
        self._extensions: Dict[str, str] = {}
        self.lock = Lock()

    def initialize(
        self,
        working_directory: Optional[Union[str, Path]] = None,
        max_image_pixels: Optional[int] = EngineConstants.DEFAULT_MAX_IMAGE_PIXELS,
    ) -> None:
        """
        Initialize the engine.

        Args:
            working_directory: Base directory for configuration lookup (default: cwd)
            max_image_pixels: Decompression bomb limit, None disables it

        Raises:
            EngineStateError: If the engine was shut down or the directory is missing
        """
        path = Path(working_directory) if working_directory else Path(os.getcwd())
        path = path.resolve()

        with self.lock:
            if self.state == EngineState.SHUT_DOWN:
                raise EngineStateError("engine has been shut down and cannot be re-initialized")

            if self.state == EngineState.READY:
                if path != self.working_directory:
                    logger.warning(
                        f"Engine already initialized in {self.working_directory}, "
                        f"ignoring {path}"
                    )
                return

            if not path.is_dir():
                raise EngineStateError(f"working directory {path} does not exist")

            logger.info(f"Working dir {path}")

            Image.init()
            self._formats, self._extensions = self._build_registry()
            self.working_directory = path
            self.config_paths = [
                path / sub for sub in EngineConstants.CONFIG_SEARCH_DIRS if (path / sub).is_dir()
            ]
            self.max_image_pixels = max_image_pixels
            Image.MAX_IMAGE_PIXELS = max_image_pixels
            self.state = EngineState.READY

        logger.info(f"Engine initialized with {len(self._formats)} formats")

    def shutdown(self) -> None:
        """Tear the engine down. No engine operation may follow."""
        with self.lock:
            if self.state == EngineState.SHUT_DOWN:
                logger.warning("Engine already shut down")
                return

            self._formats.clear()
            self._extensions.clear()
            self.config_paths = []
            self.state = EngineState.SHUT_DOWN

        logger.info("Engine shut down")

    @property
    def is_ready(self) -> bool:
        return self.state == EngineState.READY

    def require_ready(self) -> None:
        if self.state != EngineState.READY:
            raise EngineStateError(f"engine is {self.state.value}, initialize() it first")

    def get_magick_info(self, magick: str) -> Optional[MagickInfo]:
        """Look up a format by name (case-insensitive)."""
        self.require_ready()
        if not magick:
            return None
        return self._formats.get(magick.upper())

    def resolve_magick(self, filename: str) -> str:
        """
        Resolve a format name from a filename extension.

        Unknown extensions resolve to the upper-cased extension itself, which
        has no registry entry.
        """
        self.require_ready()
        suffix = Path(filename).suffix.lower()
        if not suffix:
            return ""
        return self._extensions.get(suffix, suffix[1:].upper())

    def canonical_format(self, magick: str) -> str:
        """Normalize a format name, accepting extension aliases such as "jpg"."""
        self.require_ready()
        name = (magick or "").strip().lstrip(".")
        if not name or name.upper() in self._formats:
            return name.upper()
        return self._extensions.get(f".{name.lower()}", name.upper())

    def list_formats(self) -> List[MagickInfo]:
        self.require_ready()
        return sorted(self._formats.values(), key=lambda info: info.name)

    @staticmethod
    def _build_registry() -> Tuple[Dict[str, MagickInfo], Dict[str, str]]:
        registered = Image.registered_extensions()
        extensions = {ext.lower(): name.upper() for ext, name in registered.items()}

        by_format: Dict[str, List[str]] = {}
        for ext, name in extensions.items():
            by_format.setdefault(name, []).append(ext)

        names = set(Image.OPEN) | set(Image.SAVE) | set(by_format)
        formats = {
            name.upper(): MagickInfo(
                name=name.upper(),
                extensions=tuple(sorted(by_format.get(name.upper(), []))),
                decoder=name in Image.OPEN,
                encoder=name in Image.SAVE,
                mime_type=Image.MIME.get(name.upper()),
            )
            for name in names
        }
        return formats, extensions


# Process-wide engine instance
_engine = MagickEngine()


def get_engine() -> MagickEngine:
    """Get the process-wide engine."""
    return _engine


def initialize(
    working_directory: Optional[Union[str, Path]] = None,
    max_image_pixels: Optional[int] = EngineConstants.DEFAULT_MAX_IMAGE_PIXELS,
) -> MagickEngine:
    """Initialize the process-wide engine."""
    _engine.initialize(working_directory, max_image_pixels=max_image_pixels)
    return _engine


def shutdown() -> None:
    """Shut the process-wide engine down."""
    _engine.shutdown()
