from __future__ import annotations
import logging
import os
import re
import shutil
import subprocess
import sys

from .errors import ClipboardError

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_FENCE_OPEN = re.compile(r"^\s*```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"```\s*$")


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    logger = logging.getLogger("codeplanner")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    logger.handlers = []  # Clear existing handlers
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def strip_code_fences(text: str, everywhere: bool = True) -> str:
    """Remove a markdown code fence wrapped around model output.

    The opening fence may carry a language tag. With ``everywhere`` the stray
    fence markers models leave inside JSON are dropped as well; generated code
    keeps them since they can be legitimate file content.
    """
    if not everywhere and not text.lstrip().startswith("```"):
        return text
    text = _FENCE_OPEN.sub("", text, count=1)
    text = _FENCE_CLOSE.sub("", text, count=1)
    if everywhere:
        text = text.replace("```json", "").replace("```", "")
        return text.strip()
    return text


def _clipboard_command() -> list[str] | None:
    if sys.platform == "darwin":
        candidates = [["pbcopy"]]
    elif os.name == "nt":
        candidates = [["clip"]]
    else:
        candidates = [["wl-copy"], ["xclip", "-selection", "clipboard"], ["xsel", "--clipboard", "--input"]]
    for cmd in candidates:
        if shutil.which(cmd[0]):
            return cmd
    return None


def copy_to_clipboard(text: str) -> None:
    cmd = _clipboard_command()
    if cmd is None:
        raise ClipboardError("no clipboard command found (install wl-copy, xclip or xsel)")
    try:
        subprocess.run(cmd, input=text, text=True, check=True, capture_output=True, timeout=5)
    except (OSError, subprocess.SubprocessError) as e:
        raise ClipboardError(f"{cmd[0]} failed: {e}") from e
