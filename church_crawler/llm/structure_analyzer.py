"""
LLM-powered structure analysis of a church homepage.

Task: STRUCTURE_ANALYSIS (one call per crawl, homepage HTML truncated to
15,000 characters) and PEOPLE_EXTRACTION (one call per people page,
10,000 characters).

The response contract is a JSON object {navigation, dictionary, taxonomy,
metadata}; missing keys become empty collections. Items are validated one by
one and invalid ones are dropped, so a partly malformed answer still yields
whatever is usable. Any failure of the call itself, or an answer that is not
JSON at all, raises StructureAnalysisError for the caller to fall back on.
"""

import asyncio
import json
import re
from typing import Any, List, Optional

from pydantic import ValidationError

from ..constants import ANALYZER_HTML_LIMIT, PEOPLE_HTML_LIMIT
from ..models import DictionaryEntry, PageInfo, StructureAnalysis, TaxonomyNode
from ..models.site_structure import PAGE_TYPE_BY_DEPTH
from .llm_client import LLMClient, LLMTask
from .prompt_loader import load_prompt

# Korean category labels some models answer with despite the instructions
CATEGORY_ALIASES = {
    "인물": "person",
    "부서": "department",
    "조직": "organization",
    "장소": "place",
    "행사": "event",
    "프로그램": "program",
}


class StructureAnalysisError(Exception):
    """The analyzer call failed or returned something that is not JSON."""


def repair_json(json_str: str) -> str:
    """
    Attempt to repair common JSON syntax errors from LLM output.

    Handles:
    - Trailing commas before } or ]
    - Control characters in strings
    - Truncated JSON (attempts to close brackets)
    """
    json_str = json_str.strip()

    json_str = re.sub(r",\s*}", "}", json_str)
    json_str = re.sub(r",\s*]", "]", json_str)

    json_str = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", json_str)

    open_braces = json_str.count("{") - json_str.count("}")
    open_brackets = json_str.count("[") - json_str.count("]")

    if open_braces > 0 or open_brackets > 0:
        stripped = json_str.rstrip()
        if stripped and stripped[-1] not in '{}[],":\n':
            quote_count = len(re.findall(r'(?<!\\)"', json_str))
            if quote_count % 2 == 1:
                json_str += '"'
        json_str += "]" * open_brackets
        json_str += "}" * open_braces

    return json_str


def strip_markdown_fence(text: str) -> str:
    """Content of the first ``` block, or the text itself when there is none."""
    if "```" not in text:
        return text.strip()
    parts = re.split(r"```(?:json)?", text, maxsplit=2)
    return parts[1].strip() if len(parts) > 1 else text.strip()


def parse_json_payload(text: str, opening: str = "{") -> Any:
    """
    Parse the JSON object (or array, with opening="[") embedded in an LLM answer.

    Raises:
        StructureAnalysisError: nothing parseable was found
    """
    body = strip_markdown_fence(text)
    closing = "}" if opening == "{" else "]"
    start = body.find(opening)
    if start < 0:
        raise StructureAnalysisError(f"No JSON {opening}...{closing} in response")
    end = body.rfind(closing)
    candidate = body[start : end + 1] if end > start else body[start:]

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as first_error:
        try:
            return json.loads(repair_json(candidate))
        except json.JSONDecodeError:
            raise StructureAnalysisError(f"Malformed JSON in response: {first_error}") from first_error


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def parse_navigation_item(raw: Any, depth: int = 1, parent_url: Optional[str] = None) -> Optional[PageInfo]:
    if not isinstance(raw, dict) or depth > 3:
        return None
    title = str(raw.get("title") or raw.get("name") or "").strip()
    if not title:
        return None
    url = str(raw.get("url") or raw.get("href") or "").strip()
    item = PageInfo(
        url=url,
        title=title,
        page_type=PAGE_TYPE_BY_DEPTH[depth],
        depth=depth,
        parent_url=parent_url,
    )
    for child in _as_list(raw.get("children")):
        parsed = parse_navigation_item(child, depth + 1, url or None)
        if parsed is not None:
            item.children.append(parsed)
    return item


def parse_dictionary_entry(raw: Any, source_url: Optional[str] = None) -> Optional[DictionaryEntry]:
    if not isinstance(raw, dict):
        return None
    data = dict(raw)
    category = str(data.get("category") or "").strip()
    data["category"] = CATEGORY_ALIASES.get(category, category.lower())
    if source_url and not (data.get("sourceUrl") or data.get("source_url")):
        data["source_url"] = source_url
    try:
        entry = DictionaryEntry.model_validate(data)
    except ValidationError:
        return None
    entry.term = entry.term.strip()
    return entry if entry.term else None


def parse_taxonomy_node(raw: Any) -> Optional[TaxonomyNode]:
    if not isinstance(raw, dict) or not str(raw.get("name") or "").strip():
        return None
    children = [node for node in (parse_taxonomy_node(c) for c in _as_list(raw.get("children"))) if node is not None]
    return TaxonomyNode(
        name=str(raw["name"]).strip(),
        type=raw.get("type") if isinstance(raw.get("type"), str) else None,
        description=raw.get("description") if isinstance(raw.get("description"), str) else None,
        children=children,
    )


def parse_structure_analysis(data: Any, source_url: Optional[str] = None) -> StructureAnalysis:
    """Build a StructureAnalysis from a decoded response, dropping invalid items."""
    if not isinstance(data, dict):
        return StructureAnalysis()

    navigation = [n for n in (parse_navigation_item(raw) for raw in _as_list(data.get("navigation"))) if n is not None]
    dictionary = [
        e for e in (parse_dictionary_entry(raw, source_url) for raw in _as_list(data.get("dictionary"))) if e is not None
    ]
    taxonomy = [t for t in (parse_taxonomy_node(raw) for raw in _as_list(data.get("taxonomy"))) if t is not None]

    return StructureAnalysis(
        navigation=navigation,
        dictionary=dictionary,
        taxonomy=taxonomy,
        metadata=data.get("metadata"),
    )


class StructureAnalyzer:
    """
    Homepage structure and people extraction through an LLM.

    The LLM client is blocking, so the async methods run it in a worker
    thread; the crawl loop itself stays single-threaded.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None, logger=None):
        self.logger = logger
        self.llm_client = llm_client or LLMClient(task=LLMTask.STRUCTURE_ANALYSIS, logger=logger)
        self.structure_prompt = load_prompt("structure_analyzer")
        self.people_prompt = load_prompt("people_extractor")
        self.total_cost = 0.0

    def _generate(self, prompt: str, version: str, max_tokens: int, task: LLMTask) -> str:
        try:
            response = self.llm_client.generate(
                prompt=prompt,
                temperature=0.1,
                max_tokens=max_tokens,
                json_mode=True,
                prompt_version=version,
                task=task,
            )
        except Exception as e:
            raise StructureAnalysisError(f"LLM call failed: {type(e).__name__}: {e}") from e
        self.total_cost += response.cost_usd
        return response.text

    def analyze_sync(self, html: str, url: str) -> StructureAnalysis:
        """
        Analyze homepage HTML.

        Raises:
            StructureAnalysisError: call failure or non-JSON answer
        """
        prompt = f"{self.structure_prompt.content}\n\nURL: {url}\nHTML (truncated):\n{html[:ANALYZER_HTML_LIMIT]}"
        text = self._generate(
            prompt, self.structure_prompt.version, max_tokens=8000, task=LLMTask.STRUCTURE_ANALYSIS
        )
        analysis = parse_structure_analysis(parse_json_payload(text, "{"), source_url=url)
        if self.logger:
            self.logger.info(
                f"Structure analysis: {len(analysis.navigation)} menus, "
                f"{len(analysis.dictionary)} terms, {len(analysis.taxonomy)} taxonomy roots"
            )
        return analysis

    def extract_people_sync(self, html: str, url: str) -> List[DictionaryEntry]:
        """
        Extract person entries from one page.

        Raises:
            StructureAnalysisError: call failure or non-JSON answer
        """
        prompt = f"{self.people_prompt.content}\n\nURL: {url}\nHTML:\n{html[:PEOPLE_HTML_LIMIT]}"
        text = self._generate(prompt, self.people_prompt.version, max_tokens=4000, task=LLMTask.PEOPLE_EXTRACTION)
        people = []
        for raw in _as_list(parse_json_payload(text, "[")):
            if isinstance(raw, dict):
                raw = {**raw, "category": raw.get("category") or "person"}
            entry = parse_dictionary_entry(raw, source_url=url)
            if entry is not None and entry.category == "person":
                people.append(entry)
        return people

    async def analyze(self, html: str, url: str) -> StructureAnalysis:
        return await asyncio.to_thread(self.analyze_sync, html, url)

    async def extract_people(self, html: str, url: str) -> List[DictionaryEntry]:
        return await asyncio.to_thread(self.extract_people_sync, html, url)
