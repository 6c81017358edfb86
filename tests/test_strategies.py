"""
Unit tests for prompt rewriting strategies and auto-selection.
"""

import pytest

from prompt_optimizer.core.strategies import (
    NullHeuristicOptimizer,
    QualityRequirements,
    Strategy,
    TaskComplexity,
    apply_adaptive,
    apply_context_aware,
    apply_template_based,
    compress,
    extract_key_information,
    extract_relevant_history,
    select_strategy,
)
from prompt_optimizer.core.token_counter import estimate_tokens


LONG_SENTENCES = [
    "Build a login form with email and password fields",
    "Validate the email format before submitting the form",
    "Show a clear error message when the credentials are wrong",
    "Remember the user between visits when they tick the remember me box, "
    "store the session token securely, expire it after thirty days of inactivity, "
    "and make sure logging out clears every trace of it from the browser storage",
]


class TestCompression:
    """Test regex-based compression."""

    def test_politeness_removed(self):
        """Test verbose requests are stripped from the prompt."""
        prompt = "Please kindly help me to implement the login form."

        result = compress(prompt)

        assert result.improved
        assert "please" not in result.prompt.lower()
        assert "kindly" not in result.prompt.lower()
        assert "help me to" not in result.prompt.lower()
        assert len(result.prompt) < len(prompt)
        assert result.prompt == "implement the login form."

    def test_phrase_replacements(self):
        """Test redundant phrases and conjunctions are shortened."""
        result = compress("Add caching in order to speed up reads. Moreover, add tests.")
        assert result.prompt == "Add caching to speed up reads. also, add tests."

    def test_filler_words(self):
        """Test filler words are dropped."""
        result = compress("This is basically a simple fix that actually matters.")
        assert result.prompt == "This is a simple fix that matters."

    def test_redundant_notes(self):
        """Test note-style preambles are removed."""
        result = compress("It is important to note that the API is rate limited.")
        assert result.prompt == "the API is rate limited."

    def test_please_inside_word_kept(self):
        """Test "please" inside a longer word is left alone."""
        prompt = "Do not displease the reviewers with sloppy code."
        result = compress(prompt)

        assert not result.improved
        assert result.prompt == prompt

    def test_no_improvement(self):
        """Test a tight prompt is returned unchanged."""
        prompt = "Implement the login form."
        result = compress(prompt)

        assert not result.improved
        assert result.prompt == prompt
        assert result.reason == "No compression improvements found"

    @pytest.mark.parametrize("prompt", [
        "",
        "x",
        "Please",
        "please please please",
        "Could you please, if you would, kindly summarize this?",
        "In addition to that, furthermore, moreover, additionally: done.",
        "   leading and trailing   ",
        "Implement the login form.",
    ])
    def test_never_increases_tokens(self, prompt):
        """Test compressed prompts never estimate to more tokens."""
        assert estimate_tokens(compress(prompt).prompt) <= estimate_tokens(prompt)


class TestContextAware:
    """Test history injection and complexity wording."""

    def setup_method(self):
        """Set up a prompt and history."""
        self.prompt = "Implement the login form validation with email checks"
        self.history = [
            "The login form validation needs email format checks",
            "Unrelated text about cooking pasta",
        ]

    def test_relevant_history(self):
        """Test only entries sharing three or more words are relevant."""
        assert extract_relevant_history(self.prompt, self.history) == [self.history[0]]

    def test_history_capped(self):
        """Test at most two history entries are used."""
        history = [self.history[0]] * 3
        assert len(extract_relevant_history(self.prompt, history)) == 2

    def test_repeated_prompt_words_count(self):
        """Test each occurrence of a shared prompt word counts toward relevance."""
        history = ["deploy yesterday went fine"]
        assert extract_relevant_history("deploy deploy deploy the service", history) == history
        assert extract_relevant_history("deploy deploy the service", history) == []

    def test_short_words_ignored(self):
        """Test words of three letters or fewer do not count."""
        assert extract_relevant_history("the and for api", ["the and for api"]) == []

    def test_injection_grows_prompt(self):
        """Test injected history is not an improvement on its own."""
        result = apply_context_aware(self.prompt, self.history, TaskComplexity.MEDIUM)

        assert not result.improved
        assert result.prompt.startswith("Context from previous interactions: " + self.history[0])
        assert result.prompt.endswith(self.prompt)

    def test_low_complexity_trims(self):
        """Test low complexity drops intensifiers."""
        result = apply_context_aware("Give a detailed and thorough summary of the report", [],
                                     TaskComplexity.LOW)

        assert result.improved
        assert result.prompt == "Give a and summary of the report"
        assert result.reason == "Context-aware optimization applied based on low complexity"

    def test_high_complexity_qualifier(self):
        """Test high complexity adds a qualifier that is never an improvement."""
        result = apply_context_aware("Summarize the report", [], TaskComplexity.HIGH)

        assert result.prompt == "Provide a comprehensive and detailed answer. Summarize the report"
        assert not result.improved

    def test_high_complexity_already_qualified(self):
        """Test no qualifier is added when the prompt already asks for detail."""
        result = apply_context_aware("Give a detailed summary", [], TaskComplexity.HIGH)
        assert result.prompt == "Give a detailed summary"
        assert not result.improved


class TestTemplateBased:
    """Test template-based restatement."""

    def test_key_information(self):
        """Test the first three long sentences are kept."""
        prompt = "Short. " + ". ".join(LONG_SENTENCES) + "."
        assert extract_key_information(prompt) == ". ".join(LONG_SENTENCES[:3])

    def test_no_template(self):
        """Test nothing happens without a template."""
        result = apply_template_based("Anything at all here.", "text", template_available=False)
        assert not result.improved
        assert result.reason == "No template available for tool"

    def test_fallback_sentence(self):
        """Test the minimal sentence is used without a content slot."""
        prompt = ". ".join(LONG_SENTENCES) + "."

        result = apply_template_based(prompt, "code", template_available=True)

        assert result.improved
        assert result.prompt == (
            f"Create code for {'. '.join(LONG_SENTENCES[:3])}. Follow best practices."
        )
        assert result.reason.startswith("Template optimization saved")

    def test_content_renderer(self):
        """Test the template's content slot receives the key sentences."""
        prompt = ". ".join(LONG_SENTENCES) + "."

        result = apply_template_based(
            prompt, "code", template_available=True,
            render_content=lambda content: f"Task: {content}"
        )

        assert result.improved
        assert result.prompt == f"Task: {'. '.join(LONG_SENTENCES[:3])}"

    def test_no_savings(self):
        """Test a restatement longer than the prompt is not adopted."""
        result = apply_template_based(LONG_SENTENCES[0], "text", template_available=True)
        assert not result.improved
        assert result.reason == "Template did not improve efficiency"

    def test_nothing_to_extract(self):
        """Test prompts without long sentences are left alone."""
        result = apply_template_based("Do it. Now.", "text", template_available=True)
        assert not result.improved
        assert result.prompt == "Do it. Now."


class TestAdaptiveAndHeuristic:
    """Test the adaptive and heuristic strategies."""

    def test_adaptive_short_prompt(self):
        """Test short prompts pass through."""
        result = apply_adaptive("Please summarize this.")
        assert not result.improved
        assert result.prompt == "Please summarize this."

    def test_adaptive_long_prompt(self):
        """Test prompts over 1000 tokens are compressed."""
        prompt = "Please kindly " + "word " * 900
        result = apply_adaptive(prompt)

        assert result.improved
        assert not result.prompt.lower().startswith("please")

    def test_null_heuristic(self):
        """Test the default heuristic never changes the prompt."""
        result = NullHeuristicOptimizer().optimize("Anything", TaskComplexity.HIGH)
        assert not result.improved
        assert result.prompt == "Anything"
        assert result.reason == "No heuristic optimizations found"


class TestStrategySelection:
    """Test auto-selection order."""

    def _select(self, **kwargs):
        args = dict(
            token_count=100,
            max_tokens=4000,
            has_template=False,
            task_complexity=TaskComplexity.MEDIUM,
            history=[],
            quality_requirements=QualityRequirements.STANDARD,
        )
        args.update(kwargs)
        strategy, _reason = select_strategy(**args)
        return strategy

    def test_long_prompt_compresses(self):
        """Test prompts above 80% of the limit are compressed first."""
        assert self._select(token_count=3201, has_template=True) == Strategy.COMPRESSION
        assert self._select(token_count=3200, has_template=True) == Strategy.TEMPLATE_BASED

    def test_template_before_context(self):
        """Test an available template wins over history."""
        assert self._select(has_template=True, history=["x"]) == Strategy.TEMPLATE_BASED

    def test_context_aware(self):
        """Test history on a non-trivial task selects context-aware."""
        assert self._select(history=["x"]) == Strategy.CONTEXT_AWARE
        assert self._select(history=["x"], task_complexity=TaskComplexity.LOW) == Strategy.COMPRESSION

    def test_premium_heuristic(self):
        """Test premium quality selects the heuristic strategy."""
        assert self._select(quality_requirements=QualityRequirements.PREMIUM) == Strategy.HEURISTIC

    def test_default(self):
        """Test compression is the default."""
        assert self._select() == Strategy.COMPRESSION
