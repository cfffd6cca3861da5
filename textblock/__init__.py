"""
textblock
=========

Core of a structured rich-text editing surface.

This package provides:
    - A schema registry of block nodes and inline marks with their content models,
      attribute defaults, serialization and parse rules
    - Lossless conversion between the persisted block-model tree and the internal
      editable document tree
    - Mark-range resolution, so formatting commands act on the whole contiguous
      run under a collapsed cursor
    - Selection-state snapshots for toolbars (block type, marks, alignment, appearance)
    - A command dispatcher that turns host actions into new document snapshots

Basic usage:
    >>> from textblock import CommandDispatcher, Range, build_schema, blocks_to_document
    >>> from textblock import StaticStyleResolver
    >>>
    >>> schema = build_schema()
    >>> doc = blocks_to_document(schema, [
    ...     {"typeName": "paragraph", "nodes": [{"typeName": "text", "text": "Hello"}]}
    ... ])
    >>> editor = CommandDispatcher(schema, StaticStyleResolver(), doc, Range(1, 6))
    >>> editor.toggle_mark("bold")
    True
    >>> editor.get_state()[0]["nodes"][0]["marks"]
    [{'typeName': 'bold'}]

Configuration:
    >>> import os
    >>> os.environ["TEXTBLOCK_LOG_LEVEL"] = "DEBUG"
    >>> from textblock import load_config
    >>> config = load_config()
    >>> config["default_viewport"]
    'xs'

License: MIT
Python: 3.11+
"""

import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

# =============================================================================
# VERSION METADATA
# =============================================================================

__version__ = "0.1.0"
__author__ = "textblock developers"
__description__ = "Schema, conversion and mark-range core for a rich-text block editor"
__license__ = "MIT"
__python_requires__ = ">=3.11"

VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0

if sys.version_info < (3, 11):
    raise RuntimeError(
        f"textblock requires Python 3.11 or newer. "
        f"Current version: {sys.version_info.major}."
        f"{sys.version_info.minor}.{sys.version_info.micro}"
    )

# =============================================================================
# LOGGING
# =============================================================================

PACKAGE_LOGGER_NAME = "textblock"

_LOG_LEVELS: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _setup_logging() -> None:
    """
    Configure the package logger once.

    - stderr handler for WARNING and above
    - optional rotating file handler when TEXTBLOCK_LOG_FILE is set
    - level from TEXTBLOCK_LOG_LEVEL (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Repeated calls are no-ops.
    """
    log_level = _LOG_LEVELS.get(os.environ.get("TEXTBLOCK_LOG_LEVEL", "INFO").upper(), logging.INFO)

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    if package_logger.handlers:
        return

    package_logger.setLevel(log_level)

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    log_file = os.environ.get("TEXTBLOCK_LOG_FILE")
    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                filename=log_path,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)
        except OSError as e:
            package_logger.warning("File logging unavailable (%s), using stderr only", e)


def get_logger(module_name: str) -> logging.Logger:
    """
    Return a logger namespaced under ``textblock``.

    Args:
        module_name: Usually ``__name__``. ``"__main__"`` maps to ``textblock.main``.

    Returns:
        A logger that inherits the package handlers and level.

    Example:
        >>> logger = get_logger("host.toolbar")
        >>> logger.name
        'textblock.host.toolbar'
    """
    if module_name == PACKAGE_LOGGER_NAME or module_name.startswith(PACKAGE_LOGGER_NAME + "."):
        return logging.getLogger(module_name)
    if module_name == "__main__":
        return logging.getLogger(f"{PACKAGE_LOGGER_NAME}.main")
    clean_name = module_name.lstrip(".")
    if not clean_name:
        return logging.getLogger(PACKAGE_LOGGER_NAME)
    return logging.getLogger(f"{PACKAGE_LOGGER_NAME}.{clean_name}")


# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_CONFIG: Dict[str, Any] = {
    "log_level": "INFO",
    "default_viewport": "xs",
    "heading_id_strategy": "slug",
    "bulleted_list_style_key": "globals/ul/default",
    "max_nesting_depth": 64,
}

CONFIG_FILE_NAME = "textblock.json"


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from a JSON file merged over DEFAULT_CONFIG.

    Keys:
        - log_level: str - logging level name
        - default_viewport: str - viewport used by alignment/text-style commands
        - heading_id_strategy: str - "slug" or "random"
        - bulleted_list_style_key: str - style key applied by toggle_bulleted_list
        - max_nesting_depth: int - recursion bound for tree conversion

    Args:
        config_path: Path to the JSON file. Defaults to ``textblock.json`` in the
            current directory.

    Returns:
        A new dict that always contains every default key.

    Note:
        Invalid JSON, unreadable files and non-object content fall back to defaults
        with a warning.
    """
    logger = get_logger(__name__)

    if config_path is None:
        config_path = Path(CONFIG_FILE_NAME)

    config = DEFAULT_CONFIG.copy()

    if not config_path.exists():
        logger.info("Config file %s not found, using defaults", config_path)
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            user_config = json.load(f)

        if not isinstance(user_config, dict):
            raise ValueError(
                f"Config file must contain a JSON object, got {type(user_config).__name__}"
            )

        config.update(user_config)
        logger.info("Config loaded from %s", config_path)
        logger.debug("Config: %s", config)

    except json.JSONDecodeError as e:
        logger.warning(
            "Cannot parse %s: invalid JSON at line %s, column %s. Using defaults.",
            config_path,
            e.lineno,
            e.colno,
        )
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", config_path, e)
    except ValueError as e:
        logger.warning("Invalid config format: %s. Using defaults.", e)

    return config


_setup_logging()

# =============================================================================
# PUBLIC API
# =============================================================================

# Imported after the utilities above so logging is configured first.

from textblock.model.enums import (  # noqa: E402
    AlignmentStyleKey,
    HyperlinkTarget,
    MarkTypeName,
    NodeKind,
    NodeTypeName,
    Viewport,
)
from textblock.model.node import Mark, Node  # noqa: E402
from textblock.model.selection import Cursor, Range, SelectionState  # noqa: E402
from textblock.schema.registry import (  # noqa: E402
    AttributeValidationError,
    ContentModelViolation,
    SchemaError,
    SchemaRegistry,
    UnknownTypeError,
)
from textblock.schema.builder import build_schema  # noqa: E402
from textblock.schema.html import HtmlParser, HtmlSerializer  # noqa: E402
from textblock.editor.converter import (  # noqa: E402
    ConversionError,
    ModelConverter,
    blocks_to_document,
    document_to_blocks,
    render_blocks,
)
from textblock.editor.mark_range import MarkRangeResolver  # noqa: E402
from textblock.editor.selection_state import SelectionStateComputer  # noqa: E402
from textblock.editor.styles import StaticStyleResolver, StyleResolver  # noqa: E402
from textblock.editor.commands import CommandDispatcher  # noqa: E402

__all__ = [
    "__version__",
    "get_logger",
    "load_config",
    "DEFAULT_CONFIG",
    "AlignmentStyleKey",
    "HyperlinkTarget",
    "MarkTypeName",
    "NodeKind",
    "NodeTypeName",
    "Viewport",
    "Mark",
    "Node",
    "Cursor",
    "Range",
    "SelectionState",
    "SchemaRegistry",
    "SchemaError",
    "UnknownTypeError",
    "ContentModelViolation",
    "AttributeValidationError",
    "build_schema",
    "HtmlParser",
    "HtmlSerializer",
    "ModelConverter",
    "ConversionError",
    "blocks_to_document",
    "document_to_blocks",
    "render_blocks",
    "MarkRangeResolver",
    "SelectionStateComputer",
    "StyleResolver",
    "StaticStyleResolver",
    "CommandDispatcher",
]
