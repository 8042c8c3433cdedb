"""Tests for sentence segmentation and fingerprints"""

from bs4.element import NavigableString

from highlightq.classification.segmenter import build_sentences, fingerprint, segment
from highlightq.page.scanner import TextUnit


class TestSegment:
    def test_splits_on_terminal_punctuation(self):
        text = "Hello world. This is fine! Is it now? trailing words"
        assert segment(text) == ["Hello world.", "This is fine!", "Is it now?"]

    def test_trailing_fragment_without_punctuation_is_dropped(self):
        assert segment("No terminal punctuation here") == []

    def test_short_candidates_are_dropped(self):
        assert segment("Hi. Okay then.") == ["Okay then."]

    def test_min_length_is_configurable(self):
        assert segment("Hi. Okay then.", min_length=1) == ["Hi.", "Okay then."]

    def test_punctuation_runs_stay_with_sentence(self):
        assert segment("Wait... what?! Really.") == ["Wait...", "what?!", "Really."]

    def test_empty_and_non_string_input(self):
        assert segment("") == []
        assert segment(None) == []  # type: ignore[arg-type]

    def test_deterministic(self):
        text = "First one here. Second one there!"
        assert segment(text) == segment(text)


class TestFingerprint:
    def test_prefixed_and_fixed_length(self):
        fp = fingerprint("Great, please see the attached report.")
        assert fp.startswith("sh_cache_")
        assert len(fp) == len("sh_cache_") + 32

    def test_same_text_same_fingerprint(self):
        assert fingerprint("Same text.") == fingerprint("Same text.")

    def test_order_sensitive(self):
        assert fingerprint("alpha beta.") != fingerprint("beta alpha.")


def test_build_sentences_links_back_to_unit():
    node = NavigableString("Great day today. Awful night though.")
    unit = TextUnit(node)

    sentences = build_sentences(unit)

    assert [s.text for s in sentences] == ["Great day today.", "Awful night though."]
    assert all(s.source_unit is unit for s in sentences)
    assert sentences[0].fingerprint == fingerprint("Great day today.")
