"""
Tests for clause segmentation.
"""

import pytest

from lexlens.errors import SegmentationFailure
from lexlens.pipeline.segmenter import segment_clauses


def _assert_dense_positions(clauses):
    assert [c.position for c in clauses] == list(range(len(clauses)))


class TestNumberedSections:
    """Numbered headings win when there are enough of them."""

    def test_two_sections(self, two_section_contract):
        clauses = segment_clauses(two_section_contract)
        assert len(clauses) == 2
        assert clauses[0].section_number == "1."
        assert clauses[1].section_number == "2."
        assert clauses[0].text.startswith("CONFIDENTIALITY")
        assert clauses[1].text.startswith("TERMINATION")

    def test_subsection_labels(self):
        text = (
            "Preamble text that is not a clause.\n"
            "1.1 The supplier shall deliver the goods on the agreed date.\n"
            "1.2. The buyer shall inspect the goods within five days.\n"
            "2. Payment is due thirty days after invoice."
        )
        clauses = segment_clauses(text)
        assert [c.section_number for c in clauses] == ["1.1", "1.2.", "2."]
        assert all("Preamble" not in c.text for c in clauses)

    def test_short_sections_dropped_and_positions_dense(self):
        text = (
            "1. Short.\n"
            "2. This section is long enough to be treated as a clause.\n"
            "3. Tiny\n"
            "4. Another section that easily clears the noise threshold."
        )
        clauses = segment_clauses(text)
        assert len(clauses) == 2
        assert clauses[0].section_number == "2."
        assert clauses[1].section_number == "4."
        _assert_dense_positions(clauses)

    def test_single_number_falls_back_to_paragraphs(self):
        text = (
            "1. This agreement is made between the parties named below today.\n\n"
            "The parties agree to cooperate in good faith on all matters herein."
        )
        clauses = segment_clauses(text)
        assert len(clauses) == 2
        assert all(c.section_number is None for c in clauses)


class TestParagraphs:

    def test_paragraph_split_discards_headers(self):
        text = (
            "SERVICES AGREEMENT\n\n"
            "The provider will perform the services described in the attached schedule.\n\n"
            "The customer will pay all undisputed invoices within thirty days of receipt."
        )
        clauses = segment_clauses(text)
        assert len(clauses) == 2
        assert clauses[0].text.startswith("The provider")
        _assert_dense_positions(clauses)


class TestSentenceGroups:

    def test_groups_of_three_sentences(self):
        sentences = [
            f"Sentence number {i} describes a contractual duty of the parties." for i in range(7)
        ]
        # Every paragraph is under the threshold, so grouping runs
        text = "\n\n".join(s[:40] for s in sentences)
        clauses = segment_clauses(text, sentence_splitter=lambda t: sentences)
        assert len(clauses) == 3
        assert clauses[0].text == " ".join(sentences[:3])
        assert clauses[2].text == sentences[6]
        _assert_dense_positions(clauses)

    def test_real_sentencizer(self):
        text = "\n\n".join([
            "The supplier must pay on time.",
            "Both sides keep it secret.",
            "Everyone must obey the law.",
            "The buyer returns all goods.",
            "Notify the other side early.",
            "Each party acts fairly always.",
        ])
        clauses = segment_clauses(text)
        assert len(clauses) == 2
        assert clauses[0].text.startswith("The supplier must pay on time.")
        _assert_dense_positions(clauses)


class TestDegenerateInput:

    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t\n"])
    def test_blank_input_gives_no_clauses(self, text):
        assert segment_clauses(text) == []

    @pytest.mark.parametrize("text", ["hi", "x" * 10, "Short.\n\nAlso short."])
    def test_non_blank_input_gives_at_least_one_clause(self, text):
        clauses = segment_clauses(text, sentence_splitter=lambda t: [t])
        assert len(clauses) == 1
        assert clauses[0].position == 0
        assert clauses[0].text == text.strip()

    def test_deterministic(self, two_section_contract):
        assert segment_clauses(two_section_contract) == segment_clauses(two_section_contract)

    def test_splitter_error_is_segmentation_failure(self):
        def broken(_):
            raise RuntimeError("tokenizer crashed")

        with pytest.raises(SegmentationFailure):
            segment_clauses("too short", sentence_splitter=broken)
