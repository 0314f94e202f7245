import unittest

from questionnaire_ai.core.entities import QuestionAnswer, SimilarContent, Source, SourceType
from questionnaire_ai.core.services.answer_service import AnswerService
from questionnaire_ai.core.services.grounding import (
    build_context,
    context_label,
    deduplicate_sources,
    is_no_evidence_answer,
)
from questionnaire_ai.core.services.prompts import ANSWER_SYSTEM_PROMPT

from qa_fakes import FakeRetriever, FakeSync, FakeTextGenerator, RecordingLogger, policy_hit


def _item(source_type, source_id="id-1", score=0.5, **fields):
    return SimilarContent(
        id=f"{source_id}-{score}", score=score, content=fields.pop("content", "text"),
        source_type=source_type, source_id=source_id, **fields,
    )


class TestGrounding(unittest.TestCase):
    """Source labels, context assembly and source dedup"""

    def test_label_priority(self):
        self.assertEqual(context_label(policy_hit(name="Access Policy")), 'Policy "Access Policy"')
        q = _item(SourceType.QUESTIONNAIRE, vendor_name="Globex", questionnaire_question="Do you log?")
        self.assertEqual(context_label(q), 'Questionnaire from "Globex"')
        self.assertEqual(context_label(_item(SourceType.CONTEXT_QA, context_question="Hosting?")), "Context Q&A")
        self.assertEqual(context_label(_item(SourceType.MANUAL_ANSWER)), "Manual Answer")
        kb = _item(SourceType.KNOWLEDGE_BASE_DOCUMENT, document_name="soc2.pdf")
        self.assertEqual(context_label(kb), 'Knowledge Base Document "soc2.pdf"')
        self.assertEqual(context_label(_item(SourceType.KNOWLEDGE_BASE_DOCUMENT)), "Knowledge Base Document")
        self.assertEqual(context_label(_item(SourceType.OTHER)), "other")

    def test_context_block(self):
        block = build_context([
            policy_hit(name="Access Policy", content="MFA is required."),
            _item(SourceType.MANUAL_ANSWER, content="We use Okta."),
        ])
        self.assertEqual(
            block,
            '[1] Source: Policy "Access Policy"\nMFA is required.\n\n[2] Source: Manual Answer\nWe use Okta.',
        )

    def test_chunks_of_one_record_collapse_keeping_best_score(self):
        sources = deduplicate_sources([
            policy_hit("pol-1", 0.4),
            policy_hit("pol-2", 0.7, name="Backup Policy"),
            policy_hit("pol-1", 0.9),
        ])
        self.assertEqual(sources, [
            Source(SourceType.POLICY, "pol-1", 0.9, "Policy: Data Protection Policy"),
            Source(SourceType.POLICY, "pol-2", 0.7, "Policy: Backup Policy"),
        ])

    def test_specific_names_replace_generic_ones(self):
        sources = deduplicate_sources([
            _item(SourceType.KNOWLEDGE_BASE_DOCUMENT, "doc-1", 0.6),
            _item(SourceType.KNOWLEDGE_BASE_DOCUMENT, "doc-1", 0.5, document_name="pentest-2024.pdf"),
            _item(SourceType.MANUAL_ANSWER, "ma-1", 0.3,
                  manual_answer_question="How often do you run penetration tests against production systems?"),
        ])
        self.assertEqual(sources[0].source_name, "pentest-2024.pdf")
        self.assertEqual(sources[0].score, 0.6)
        self.assertEqual(
            sources[1].source_name,
            "Manual Answer: How often do you run penetration tests against pro...",
        )

    def test_natural_key_when_id_missing(self):
        sources = deduplicate_sources([
            _item(SourceType.POLICY, "", 0.2, policy_name="Access Policy"),
            _item(SourceType.POLICY, "", 0.3, policy_name="Access Policy"),
        ])
        self.assertEqual(len(sources), 1)
        self.assertEqual(sources[0].source_id, "Access Policy")

    def test_no_evidence_markers(self):
        for text in ("N/A - no evidence found", "There is NO EVIDENCE of this.",
                     "The answer is not found in the context."):
            self.assertTrue(is_no_evidence_answer(text), text)
        self.assertFalse(is_no_evidence_answer("We encrypt data at rest."))
        self.assertFalse(is_no_evidence_answer(None))


class TestAnswerQuestion(unittest.IsolatedAsyncioTestCase):
    def _service(self, retriever=None, generator=None, sync=None, logger=None):
        self.retriever = retriever or FakeRetriever([policy_hit("pol-1", 0.6), policy_hit("pol-1", 0.8)])
        self.generator = generator or FakeTextGenerator()
        self.sync = sync or FakeSync()
        return AnswerService(self.retriever, self.generator, self.sync, logger=logger)

    async def test_grounded_answer_with_deduplicated_sources(self):
        result = await self._service().answer_question("Do you encrypt data at rest?", "org-1", 4)

        self.assertTrue(result.success)
        self.assertEqual(result.question_index, 4)
        self.assertEqual(result.answer, "We encrypt all data at rest.")
        self.assertEqual(result.sources, (Source(SourceType.POLICY, "pol-1", 0.8, "Policy: Data Protection Policy"),))
        self.assertEqual(self.sync.calls, ["org-1"])

        call = self.generator.calls[0]
        self.assertEqual(call["system"], ANSWER_SYSTEM_PROMPT)
        self.assertIn("Question: Do you encrypt data at rest?", call["prompt"])
        self.assertIn('[2] Source: Policy "Data Protection Policy"', call["prompt"])

    async def test_empty_retrieval_skips_generation(self):
        result = await self._service(retriever=FakeRetriever([])).answer_question("Anything?", "org-1")
        self.assertTrue(result.success)
        self.assertIsNone(result.answer)
        self.assertEqual(result.sources, ())
        self.assertEqual(self.generator.calls, [])

    async def test_no_evidence_reply_drops_sources(self):
        service = self._service(generator=FakeTextGenerator("N/A - No Evidence found"))
        result = await service.answer_question("Do you have ISO 27001?", "org-1")
        self.assertTrue(result.success)
        self.assertIsNone(result.answer)
        self.assertEqual(result.sources, ())

    async def test_retrieval_failure_is_captured(self):
        log = RecordingLogger()
        service = self._service(retriever=FakeRetriever([policy_hit()], fail_on="fail"), logger=log)
        result = await service.answer_question("Will this fail?", "org-1", 2)

        self.assertFalse(result.success)
        self.assertIsNone(result.answer)
        self.assertEqual(result.sources, ())
        self.assertIn("vector store unavailable", result.error)
        self.assertIn("Failed to answer question", log.messages("error"))

    async def test_sync_failure_is_swallowed(self):
        log = RecordingLogger()
        service = self._service(sync=FakeSync(fail=True), logger=log)
        result = await service.answer_question("Do you encrypt?", "org-1")
        self.assertTrue(result.success)
        self.assertIsNotNone(result.answer)
        self.assertTrue(log.messages("warning"))

    async def test_skip_sync(self):
        service = self._service()
        await service.answer_question("Do you encrypt?", "org-1", skip_sync=True)
        self.assertEqual(self.sync.calls, [])


class TestGenerateAnswers(unittest.IsolatedAsyncioTestCase):
    async def test_only_unanswered_questions_are_filled(self):
        retriever = FakeRetriever([policy_hit()], fail_on="fail")
        generator = FakeTextGenerator(lambda prompt: "N/A - no evidence found" if "ISO" in prompt else "We do.")
        sync = FakeSync()
        log = RecordingLogger()
        service = AnswerService(retriever, generator, sync, logger=log)

        existing = QuestionAnswer("Do you log?", "Yes, centrally.")
        questions = [
            existing,
            QuestionAnswer("Do you encrypt?", None),
            QuestionAnswer("Will retrieval fail?", None),
            QuestionAnswer("Are you ISO certified?", "  "),
        ]
        result = await service.generate_answers(questions, "org-9")

        self.assertIs(result[0], existing)
        self.assertEqual(result[1].answer, "We do.")
        self.assertEqual(result[1].sources[0].source_id, "pol-1")
        self.assertEqual(result[2], questions[2])
        self.assertEqual(result[3], questions[3])
        self.assertEqual(sync.calls, ["org-9"])
        self.assertEqual(len(retriever.queries), 3)
        self.assertIn("Generating answers for 3 of 4 questions", log.messages("info"))
        self.assertTrue(any(m.startswith("Batch answer generation completed: 1/3 answered") for m in log.messages("info")))

    async def test_fully_answered_batch_is_untouched(self):
        sync = FakeSync()
        service = AnswerService(FakeRetriever([policy_hit()]), FakeTextGenerator(), sync)
        questions = [QuestionAnswer("Do you log?", "Yes")]
        self.assertEqual(await service.generate_answers(questions, "org-1"), questions)
        self.assertEqual(sync.calls, [])

    async def test_sync_failure_does_not_block_batch(self):
        service = AnswerService(FakeRetriever([policy_hit()]), FakeTextGenerator(), FakeSync(fail=True))
        result = await service.generate_answers([QuestionAnswer("Do you encrypt?")], "org-1")
        self.assertEqual(result[0].answer, "We encrypt all data at rest.")


if __name__ == "__main__":
    unittest.main()
