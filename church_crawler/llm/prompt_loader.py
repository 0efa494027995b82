"""
Prompt file loader with versioning and content hashing.

Prompt files live in llm/prompts/<name>.txt and start with a header:
```
# PROMPT: structure_analyzer
# VERSION: 1.1.0
# DESCRIPTION: Brief description
# ---PROMPT_START---
[prompt instructions]
```

The content hash covers only the text below the separator, so the crawl
log can record exactly which instructions produced an analysis. Page data
is appended by the caller after the instructions.

Usage:
    from church_crawler.llm.prompt_loader import load_prompt

    prompt = load_prompt("structure_analyzer")
    text = f"{prompt.content}\n\nURL: {url}\nHTML:\n{html}"
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SEPARATOR_RE = re.compile(r"^#\s*---PROMPT_START---\s*$", re.MULTILINE)
HEADER_LINE_RE = re.compile(r"^#\s*(\w+):\s*(.+)$")

# {prompt_name: {version: content_hash}} seen during this process
_version_hash_cache: Dict[str, Dict[str, str]] = {}


@dataclass
class PromptInfo:
    """Loaded prompt with metadata."""

    name: str
    version: str
    content: str
    content_hash: str
    description: Optional[str] = None
    file_path: Optional[str] = None
    hash_mismatch: bool = False  # content changed but version didn't


def _compute_hash(content: str) -> str:
    """SHA256 of the prompt body, truncated to 16 chars."""
    return hashlib.sha256(content.strip().encode()).hexdigest()[:16]


def _parse_header(text: str) -> tuple[Dict[str, str], str]:
    """
    Split a prompt file into (header fields, body).

    Files without the separator are all body.
    """
    match = SEPARATOR_RE.search(text)
    if not match:
        return {}, text.strip()

    fields = {}
    for line in text[: match.start()].strip().splitlines():
        line_match = HEADER_LINE_RE.match(line.strip())
        if line_match:
            fields[line_match.group(1).lower()] = line_match.group(2).strip()
    return fields, text[match.end() :].strip()


def _get_prompts_dir() -> Path:
    return Path(__file__).parent / "prompts"


def load_prompt(name: str, prompts_dir: Optional[Path] = None) -> PromptInfo:
    """
    Load a prompt file with version and hash tracking.

    Args:
        name: Prompt name (without .txt extension)
        prompts_dir: Optional custom prompts directory

    Returns:
        PromptInfo with metadata and content

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    file_path = (prompts_dir or _get_prompts_dir()) / f"{name}.txt"
    if not file_path.exists():
        raise FileNotFoundError(f"Prompt file not found: {file_path}")

    fields, content = _parse_header(file_path.read_text(encoding="utf-8"))
    version = fields.get("version", "0.0.0")
    content_hash = _compute_hash(content)

    known = _version_hash_cache.setdefault(name, {})
    hash_mismatch = version in known and known[version] != content_hash
    if hash_mismatch:
        logger.warning(
            f"Prompt '{name}' content changed but version still {version}. "
            f"Expected hash {known[version][:8]}..., got {content_hash[:8]}... "
            f"Consider bumping the version."
        )
    known[version] = content_hash

    return PromptInfo(
        name=name,
        version=version,
        content=content,
        content_hash=content_hash,
        description=fields.get("description"),
        file_path=str(file_path),
        hash_mismatch=hash_mismatch,
    )
