import unittest

from questionnaire_ai.core.entities import ChunkingOptions
from questionnaire_ai.core.services.chunker import (
    DEFAULT_QUESTION_RULES,
    EXTENDED_QUESTION_RULES,
    build_question_aware_chunks,
    classify_line,
    estimate_question_count,
    looks_like_question,
)

SOC2_DOC = "What is your SOC 2 status?\nWe have SOC 2 Type II.\nDo you encrypt data at rest?\nYes, AES-256."


def _non_blank(text):
    return [line.strip() for line in text.strip().splitlines() if line.strip()]


class TestQuestionRules(unittest.TestCase):
    """Line classification with the default and extended rule sets"""

    def test_question_mark_suffix(self):
        self.assertEqual(classify_line("Is MFA enforced?  "), "question_mark")
        self.assertEqual(classify_line("多要素認証を使用していますか？"), "question_mark")

    def test_numbered_question_prefix(self):
        self.assertEqual(classify_line("Question 4: Incident response"), "question_prefix")
        self.assertEqual(classify_line("3) Q - Backups"), "question_prefix")

    def test_interrogative_and_imperative_words(self):
        for line in ("Describe your backup process", "list all subprocessors", "Do you use SSO"):
            self.assertTrue(looks_like_question(line), line)

    def test_word_boundaries(self):
        self.assertFalse(looks_like_question("Isolation levels are configurable."))
        self.assertFalse(looks_like_question("Quality assurance team"))
        self.assertFalse(looks_like_question("Document retention: 7 years"))

    def test_blank_line_is_never_a_question(self):
        self.assertIsNone(classify_line("   "))

    def test_extended_rules_cover_form_fields(self):
        for line in ("06. Do you use MFA", "Q1: How is data classified", "1.1 Vendor Name",
                     "Primary contact *", "Hosting region (Single selection allowed)"):
            self.assertFalse(looks_like_question(line, DEFAULT_QUESTION_RULES), line)
            self.assertTrue(looks_like_question(line, EXTENDED_QUESTION_RULES), line)

    def test_first_matching_rule_wins(self):
        self.assertEqual(classify_line("What is your SOC 2 status?"), "question_mark")


class TestEstimateQuestionCount(unittest.TestCase):
    def test_counts_question_marks_first(self):
        self.assertEqual(estimate_question_count("a? b？ c?"), 3)

    def test_falls_back_to_question_lines(self):
        self.assertEqual(estimate_question_count("Describe backups\nnotes\nExplain logging"), 2)

    def test_falls_back_to_length(self):
        self.assertEqual(estimate_question_count("x" * 3000), 2)
        self.assertEqual(estimate_question_count("short"), 1)


class TestBuildQuestionAwareChunks(unittest.TestCase):
    """Chunk boundaries fall exactly on question lines"""

    def test_empty_input(self):
        self.assertEqual(build_question_aware_chunks(""), [])
        self.assertEqual(build_question_aware_chunks(" \n\t\n"), [])

    def test_two_question_document(self):
        chunks = build_question_aware_chunks(SOC2_DOC)
        self.assertEqual(len(chunks), 2)
        self.assertEqual(chunks[0].content, "What is your SOC 2 status?\nWe have SOC 2 Type II.")
        self.assertEqual(chunks[1].content, "Do you encrypt data at rest?\nYes, AES-256.")
        self.assertTrue(all(c.question_count == 1 for c in chunks))

    def test_leading_context_rides_with_first_question(self):
        text = "Vendor Security Assessment\n\nWhat is X?\nX is Y.\nWhat is Z?\nZ."
        chunks = build_question_aware_chunks(text)
        self.assertEqual(len(chunks), 2)
        self.assertEqual(chunks[0].content, "Vendor Security Assessment\n\nWhat is X?\nX is Y.")

    def test_blank_padding_is_trimmed(self):
        text = "What is A?\nA.\n\n\n\nWhat is B?\n\nB."
        chunks = build_question_aware_chunks(text)
        self.assertEqual([c.content for c in chunks], ["What is A?\nA.", "What is B?\n\nB."])

    def test_consecutive_questions_each_get_a_chunk(self):
        chunks = build_question_aware_chunks("Do you log?\nDo you alert?\nDo you page?")
        self.assertEqual([c.content for c in chunks], ["Do you log?", "Do you alert?", "Do you page?"])

    def test_no_question_falls_back_to_whole_document(self):
        text = "  Company overview\nWe are a small team.\n"
        chunks = build_question_aware_chunks(text)
        self.assertEqual(len(chunks), 1)
        self.assertEqual(chunks[0].content, "Company overview\nWe are a small team.")
        self.assertEqual(chunks[0].question_count, 1)

    def test_long_document_without_questions_estimates_by_length(self):
        text = "\n".join(["Our team manages operations daily and reviews access monthly."] * 50)
        self.assertGreater(len(text), 2400)
        chunks = build_question_aware_chunks(text)
        self.assertEqual(len(chunks), 1)
        self.assertEqual(chunks[0].content, text)
        self.assertGreaterEqual(chunks[0].question_count, 2)
        self.assertEqual(chunks[0].question_count, len(text) // 1200)

    def test_options_do_not_change_boundaries(self):
        tight = ChunkingOptions(max_chunk_chars=10, min_chunk_chars=1, max_questions_per_chunk=5)
        self.assertEqual(
            [c.content for c in build_question_aware_chunks(SOC2_DOC, tight)],
            [c.content for c in build_question_aware_chunks(SOC2_DOC)],
        )

    def test_every_non_blank_line_appears_once_in_order(self):
        text = (
            "Header row\n\n1) Question: Access control\nRBAC everywhere\n"
            "Do you rotate keys?\n\n  yearly  \nWhere is data hosted?\r\nEU only\n\n"
        )
        chunks = build_question_aware_chunks(text)
        rebuilt = [line for c in chunks for line in _non_blank(c.content)]
        self.assertEqual(rebuilt, _non_blank(text))

    def test_no_chunk_holds_two_question_lines_after_its_first(self):
        text = "What is A?\nA\nHow is B?\nB\nnote\nCan C?\n"
        for chunk in build_question_aware_chunks(text):
            flagged = [l for l in chunk.content.splitlines() if looks_like_question(l)]
            self.assertEqual(len(flagged), 1)
            self.assertTrue(looks_like_question(chunk.content.splitlines()[0]))

    def test_extended_rules_split_form_fields(self):
        text = "1.1 Vendor Name\nAcme\n1.2 Contact Email\nops@acme.test"
        self.assertEqual(len(build_question_aware_chunks(text)), 1)
        chunks = build_question_aware_chunks(text, rules=EXTENDED_QUESTION_RULES)
        self.assertEqual([c.content for c in chunks], ["1.1 Vendor Name\nAcme", "1.2 Contact Email\nops@acme.test"])


if __name__ == "__main__":
    unittest.main()
