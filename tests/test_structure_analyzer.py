"""Tests for the LLM structure analyzer and the LiteLLM client."""

import asyncio
from types import SimpleNamespace

import pytest

from church_crawler.llm import llm_client
from church_crawler.llm.llm_client import LLMClient, LLMResponse, LLMTask
from church_crawler.llm.prompt_loader import load_prompt
from church_crawler.llm.structure_analyzer import (
    StructureAnalysisError,
    StructureAnalyzer,
    parse_dictionary_entry,
    parse_json_payload,
    parse_structure_analysis,
    repair_json,
)

URL = "https://church.test/"

ANALYSIS_ANSWER = """Here is the structure:
```json
{
  "navigation": [
    {"title": "교회소개", "url": "/about", "children": [
      {"title": "비전", "url": "/about/vision"},
      {"url": "/no-title"}
    ]},
    "not an object"
  ],
  "dictionary": [
    {"term": "국제선교부", "category": "부서", "subcategory": "mission"},
    {"term": "새가족반", "category": "program", "aliases": ["새신자반"]},
    {"term": "무엇", "category": "unknown"},
    {"category": "person"},
  ],
  "taxonomy": [{"name": "교회", "children": [{"name": "교육부", "type": "department"}]}],
  "metadata": {"language": "ko"}
}
```"""


class FakeLLMClient:
    """Returns canned answers in order and records every call."""

    def __init__(self, *answers, error: Exception | None = None):
        self.answers = list(answers)
        self.error = error
        self.calls: list[dict] = []

    def generate(self, **kwargs) -> LLMResponse:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return LLMResponse(text=self.answers.pop(0), model="fake", provider="fake", cost_usd=0.01)


class TestAnalyze:
    def test_parses_fenced_answer_and_drops_invalid_items(self):
        analyzer = StructureAnalyzer(llm_client=FakeLLMClient(ANALYSIS_ANSWER))

        analysis = analyzer.analyze_sync("<html></html>", URL)

        assert [item.title for item in analysis.navigation] == ["교회소개"]
        assert [child.title for child in analysis.navigation[0].children] == ["비전"]
        assert analysis.navigation[0].children[0].depth == 2
        assert [entry.term for entry in analysis.dictionary] == ["국제선교부", "새가족반"]
        assert analysis.dictionary[0].category == "department"
        assert analysis.dictionary[1].aliases == ["새신자반"]
        assert all(entry.source_url == URL for entry in analysis.dictionary)
        assert analysis.taxonomy[0].children[0].type == "department"
        assert analysis.metadata == {"language": "ko"}

    def test_prompt_and_call_options(self):
        client = FakeLLMClient('{"navigation": []}')
        analyzer = StructureAnalyzer(llm_client=client)
        html = "X" * 14991 + "MARKER_END_OF_LIMIT"

        analyzer.analyze_sync(html, URL)

        call = client.calls[0]
        assert call["prompt"].startswith(analyzer.structure_prompt.content)
        assert f"URL: {URL}" in call["prompt"]
        assert "MARKER_EN" in call["prompt"]
        assert "MARKER_END" not in call["prompt"]
        assert call["json_mode"] is True
        assert call["max_tokens"] == 8000
        assert call["prompt_version"] == analyzer.structure_prompt.version
        assert call["task"] is LLMTask.STRUCTURE_ANALYSIS

    def test_missing_keys_are_empty(self):
        analysis = StructureAnalyzer(llm_client=FakeLLMClient("{}")).analyze_sync("", URL)
        assert analysis.is_empty()
        assert analysis.metadata == {}

    def test_non_json_answer_raises(self):
        analyzer = StructureAnalyzer(llm_client=FakeLLMClient("I could not find a menu."))
        with pytest.raises(StructureAnalysisError):
            analyzer.analyze_sync("<html></html>", URL)

    def test_client_failure_raises(self):
        analyzer = StructureAnalyzer(llm_client=FakeLLMClient(error=RuntimeError("quota exceeded")))
        with pytest.raises(StructureAnalysisError, match="quota exceeded"):
            analyzer.analyze_sync("<html></html>", URL)

    def test_cost_accumulates(self):
        analyzer = StructureAnalyzer(llm_client=FakeLLMClient("{}", "[]"))

        analyzer.analyze_sync("", URL)
        analyzer.extract_people_sync("", URL)

        assert analyzer.total_cost == pytest.approx(0.02)

    def test_async_wrapper(self):
        analyzer = StructureAnalyzer(llm_client=FakeLLMClient(ANALYSIS_ANSWER))
        analysis = asyncio.run(analyzer.analyze("<html></html>", URL))
        assert analysis.navigation[0].url == "/about"


class TestExtractPeople:
    ANSWER = """[
      {"term": "홍길동", "subcategory": "담임목사"},
      {"term": "김은혜", "category": "person", "subcategory": "전도사"},
      {"term": "교육부", "category": "department"},
      {"term": ""}
    ]"""

    def test_only_people_kept(self):
        client = FakeLLMClient(self.ANSWER)
        analyzer = StructureAnalyzer(llm_client=client)

        people = analyzer.extract_people_sync("<p>담임목사 홍길동</p>", URL + "staff")

        assert [(p.term, p.subcategory) for p in people] == [("홍길동", "담임목사"), ("김은혜", "전도사")]
        assert all(p.category == "person" and p.source_url == URL + "staff" for p in people)
        assert client.calls[0]["max_tokens"] == 4000
        assert client.calls[0]["task"] is LLMTask.PEOPLE_EXTRACTION
        assert client.calls[0]["prompt_version"] == analyzer.people_prompt.version

    def test_async_wrapper(self):
        analyzer = StructureAnalyzer(llm_client=FakeLLMClient(self.ANSWER))
        people = asyncio.run(analyzer.extract_people("", URL))
        assert len(people) == 2

    def test_object_instead_of_array_raises(self):
        analyzer = StructureAnalyzer(llm_client=FakeLLMClient("no people here"))
        with pytest.raises(StructureAnalysisError):
            analyzer.extract_people_sync("", URL)


class TestJsonHelpers:
    def test_repair_trailing_commas(self):
        assert repair_json('{"a": [1, 2,],}') == '{"a": [1, 2]}'

    def test_repair_truncated(self):
        assert repair_json('{"a": [1, 2') == '{"a": [1, 2]}'

    def test_payload_inside_prose(self):
        assert parse_json_payload('The answer is {"navigation": []} as requested.') == {"navigation": []}

    def test_array_payload(self):
        assert parse_json_payload('```\n[{"term": "a"}]\n```', "[") == [{"term": "a"}]

    def test_structure_from_non_dict(self):
        assert parse_structure_analysis(["navigation"]).is_empty()

    @pytest.mark.parametrize("label,category", [("인물", "person"), ("행사", "event"), ("Place", "place")])
    def test_category_aliases(self, label, category):
        assert parse_dictionary_entry({"term": "x", "category": label}).category == category

    def test_source_url_not_overwritten(self):
        entry = parse_dictionary_entry({"term": "x", "category": "event", "sourceUrl": "https://a.test/"}, URL)
        assert entry.source_url == "https://a.test/"


class TestPrompts:
    def test_prompt_files_have_versions(self):
        for name in ("structure_analyzer", "people_extractor"):
            prompt = load_prompt(name)
            assert prompt.version != "0.0.0"
            assert "# PROMPT" not in prompt.content
            assert len(prompt.content_hash) == 16

    def test_missing_prompt(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_prompt("missing", prompts_dir=tmp_path)

    def test_file_without_header(self, tmp_path):
        (tmp_path / "plain.txt").write_text("Just instructions.", encoding="utf-8")

        prompt = load_prompt("plain", prompts_dir=tmp_path)

        assert prompt.version == "0.0.0"
        assert prompt.content == "Just instructions."


def completion_response(text: str = '{"ok": true}', choices: bool = True):
    choice = SimpleNamespace(message=SimpleNamespace(content=text), finish_reason="stop")
    return SimpleNamespace(
        choices=[choice] if choices else [],
        usage=SimpleNamespace(prompt_tokens=1000, completion_tokens=500),
        id="resp-1",
    )


class FakeCompletion:
    """Stands in for litellm.completion; outcomes are responses or exceptions."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestLLMClient:
    @pytest.fixture
    def fake_cost(self, monkeypatch):
        monkeypatch.setattr(llm_client, "completion_cost", lambda completion_response: 0.002)

    def test_generate_with_json_mode(self, monkeypatch, fake_cost):
        fake = FakeCompletion(completion_response())
        monkeypatch.setattr(llm_client, "completion", fake)

        response = LLMClient(model="gpt-4o-mini", fallback_models=[]).generate("prompt", json_mode=True, max_tokens=100)

        assert response.text == '{"ok": true}'
        assert response.provider == "openai"
        assert response.cost_usd == 0.002
        assert response.input_tokens == 1000
        assert fake.calls[0]["response_format"] == {"type": "json_object"}
        assert fake.calls[0]["max_tokens"] == 100

    def test_call_task_overrides_client_task(self, monkeypatch, fake_cost):
        monkeypatch.setattr(llm_client, "completion", FakeCompletion(completion_response(), completion_response()))
        client = LLMClient(task=LLMTask.STRUCTURE_ANALYSIS, model="gpt-4o-mini", fallback_models=[])

        people = client.generate("prompt", task=LLMTask.PEOPLE_EXTRACTION)
        default = client.generate("prompt")

        assert people.task == "people_extraction"
        assert people.prompt_version == llm_client.PROMPT_VERSIONS["people_extraction"]
        assert default.task == "structure_analysis"

    def test_google_models_get_no_max_tokens(self, monkeypatch, fake_cost):
        fake = FakeCompletion(completion_response())
        monkeypatch.setattr(llm_client, "completion", fake)

        LLMClient(model="gemini-2.5-flash", fallback_models=[]).generate("prompt", max_tokens=100)

        assert "max_tokens" not in fake.calls[0]
        assert fake.calls[0]["model"] == "gemini/gemini-2.5-flash"

    def test_transient_error_uses_fallback(self, monkeypatch, fake_cost):
        fake = FakeCompletion(RuntimeError("Rate limit exceeded (429)"), completion_response("fallback"))
        monkeypatch.setattr(llm_client, "completion", fake)

        response = LLMClient(model="gpt-4o-mini", fallback_models=["gemini-2.5-flash"]).generate("prompt")

        assert response.text == "fallback"
        assert response.model == "gemini-2.5-flash"
        assert [call["model"] for call in fake.calls] == ["gpt-4o-mini", "gemini/gemini-2.5-flash"]

    def test_permanent_error_raises(self, monkeypatch, fake_cost):
        fake = FakeCompletion(RuntimeError("Invalid API key provided"))
        monkeypatch.setattr(llm_client, "completion", fake)

        with pytest.raises(RuntimeError):
            LLMClient(model="gpt-4o-mini", fallback_models=["gemini-2.5-flash"]).generate("prompt")
        assert len(fake.calls) == 1

    def test_cost_from_registry_when_litellm_cannot_price(self, monkeypatch):
        def no_price(completion_response):
            raise ValueError("model not mapped")

        monkeypatch.setattr(llm_client, "completion", FakeCompletion(completion_response()))
        monkeypatch.setattr(llm_client, "completion_cost", no_price)

        response = LLMClient(model="gpt-4o-mini", fallback_models=[]).generate("prompt")

        assert response.cost_usd == pytest.approx(1000 / 1e6 * 0.15 + 500 / 1e6 * 0.60)

    def test_empty_choices(self, monkeypatch, fake_cost):
        monkeypatch.setattr(llm_client, "completion", FakeCompletion(completion_response(choices=False)))

        with pytest.raises(RuntimeError, match="empty choices"):
            LLMClient(model="gpt-4o-mini", fallback_models=[]).generate("prompt")

    def test_unregistered_model_passed_through(self):
        config = llm_client.get_model_config("openrouter/some-model")
        assert config["litellm_name"] == "openrouter/some-model"
        assert config["provider"] == "openrouter"
        assert config["supports_json_mode"] is False
