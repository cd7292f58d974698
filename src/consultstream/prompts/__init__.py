"""System instruction templates.

Hidden design decisions:
- Templates are plain text files formatted with ``str.format``
- Where templates are looked up, and in which order
"""

import os
from functools import lru_cache
from pathlib import Path

_PACKAGE_DIR = Path(__file__).parent


def _search_paths(filename: str) -> list[Path]:
    paths = []
    override = os.getenv("CONSULTSTREAM_PROMPTS_DIR")
    if override:
        paths.append(Path(override) / filename)
    paths.append(Path.cwd() / "prompts" / filename)
    paths.append(_PACKAGE_DIR / filename)
    return paths


@lru_cache(maxsize=8)
def load_prompt(name: str) -> str:
    """Read a template by name.

    Looked up in ``$CONSULTSTREAM_PROMPTS_DIR``, then ``./prompts``, then the
    templates shipped with the package.

    Raises:
        FileNotFoundError: If no location has ``{name}.txt``
    """
    candidates = _search_paths(f"{name}.txt")
    for path in candidates:
        if path.is_file():
            return path.read_text(encoding="utf-8")

    searched = "\n".join(f"  - {path}" for path in candidates)
    raise FileNotFoundError(f"Prompt template '{name}' not found. Searched:\n{searched}")


def get_system_instruction(language: str = "English", context: str | None = None) -> str:
    """Build the system instruction describing the executive-brief and widget protocol.

    Args:
        language: Language the answer and widget text must be written in
        context: Optional live dashboard snapshot to ground the answer on
    """
    context_block = ""
    if context:
        context_block = (
            "\nCURRENT LIVE DASHBOARD DATA:\n"
            f"{context}\n"
            "Use this data to provide specific, calculated insights. Reference the numbers directly.\n"
        )
    return load_prompt("system").format(language=language, context_block=context_block)


def clear_cache() -> None:
    """Forget loaded templates so edited files are read again."""
    load_prompt.cache_clear()


__all__ = [
    "load_prompt",
    "get_system_instruction",
    "clear_cache",
]
