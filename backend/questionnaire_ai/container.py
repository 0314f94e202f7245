from __future__ import annotations
import logging
from dataclasses import dataclass

from questionnaire_ai.core.entities import ChunkingOptions
from questionnaire_ai.core.ports.embeddings import IEmbeddingModel, IEmbeddingSync
from questionnaire_ai.core.ports.logger import StdlibPipelineLogger
from questionnaire_ai.core.ports.retriever import IContentRetriever
from questionnaire_ai.core.services.answer_service import AnswerService
from questionnaire_ai.core.services.chunker import QUESTION_RULE_SETS
from questionnaire_ai.core.services.content_extractor import ContentExtractor
from questionnaire_ai.core.services.export_service import ExportService
from questionnaire_ai.core.services.fanout import FailurePolicy
from questionnaire_ai.core.services.pipeline import QuestionnairePipeline
from questionnaire_ai.core.services.question_parser import QuestionParser
from questionnaire_ai.core.services.questionnaire_service import QuestionnaireService
from questionnaire_ai.models.embedding.hash_embedding import HashEmbedding
from questionnaire_ai.models.embedding.ollama_embedding import OllamaEmbedding
from questionnaire_ai.models.llm.ollama_generator import (
    OllamaChatClient,
    OllamaStructuredGenerator,
    OllamaTextGenerator,
)
from questionnaire_ai.models.retriever.pgvector_retriever import PgVectorContentRetriever
from questionnaire_ai.models.store.inmemory_knowledge import InMemoryKnowledgeStore
from questionnaire_ai.models.sync.pg_embedding_sync import PgEmbeddingSync

logger = logging.getLogger("qa.container")


@dataclass
class AppContainer:
    questionnaire_service: QuestionnaireService
    embedder: IEmbeddingModel
    retriever: IContentRetriever
    embedding_sync: IEmbeddingSync
    mode: str


def build_embedder(settings) -> IEmbeddingModel:
    if settings.embedding_backend == "hash":
        logger.info(f"🔌 Using hash embedding: dim={settings.embedding_dim}")
        return HashEmbedding(dim=settings.embedding_dim)
    logger.info(f"🔌 Using Ollama embedding: model={settings.embedding_model}")
    return OllamaEmbedding(host=settings.ollama_host, model=settings.embedding_model)


def build_container(settings) -> AppContainer:
    """Wire adapters and services from settings."""
    logger.info(
        f"🔧 Building container - retriever: {settings.retriever_backend}, "
        f"embeddings: {settings.embedding_backend}, rules: {settings.question_rules}"
    )
    embedder = build_embedder(settings)

    if settings.retriever_backend == "memory":
        store = InMemoryKnowledgeStore(embedder, min_similarity=settings.rag_min_similarity)
        if settings.knowledge_seed_path:
            store.load_seed(settings.knowledge_seed_path)
        else:
            logger.warning("⚠️ Memory retriever has no KNOWLEDGE_SEED_PATH; answers will find no evidence")
        retriever, embedding_sync = store, store
    else:
        retriever = PgVectorContentRetriever(
            embedder, table=settings.knowledge_table, min_similarity=settings.rag_min_similarity
        )
        embedding_sync = PgEmbeddingSync(embedder, table=settings.knowledge_table)

    def client(model: str) -> OllamaChatClient:
        return OllamaChatClient(settings.ollama_host, model, timeout=settings.llm_timeout)

    parse_client = client(settings.parsing_model)
    parse_client.check_connectivity()

    pipeline = QuestionnairePipeline(
        extractor=ContentExtractor(
            OllamaTextGenerator(client(settings.vision_model)),
            logger=StdlibPipelineLogger("qa.extract"),
        ),
        parser=QuestionParser(
            OllamaStructuredGenerator(parse_client),
            logger=StdlibPipelineLogger("qa.parse"),
        ),
        options=ChunkingOptions(
            max_chunk_chars=settings.max_chunk_chars,
            min_chunk_chars=settings.min_chunk_chars,
            max_questions_per_chunk=settings.max_questions_per_chunk,
        ),
        rules=QUESTION_RULE_SETS[settings.question_rules],
        chunk_policy=FailurePolicy(settings.chunk_failure_policy),
        max_concurrency=settings.parse_concurrency,
        logger=StdlibPipelineLogger("qa.pipeline"),
    )
    answers = AnswerService(
        retriever=retriever,
        generator=OllamaTextGenerator(client(settings.answer_model)),
        embedding_sync=embedding_sync,
        top_k=settings.rag_top_k,
        max_concurrency=settings.answer_concurrency,
        logger=StdlibPipelineLogger("qa.answers"),
    )
    service = QuestionnaireService(
        pipeline=pipeline,
        answers=answers,
        exports=ExportService(logger=StdlibPipelineLogger("qa.export")),
        logger=StdlibPipelineLogger("qa.service"),
    )

    logger.info("✅ Container built successfully")
    return AppContainer(
        questionnaire_service=service,
        embedder=embedder,
        retriever=retriever,
        embedding_sync=embedding_sync,
        mode=settings.retriever_backend,
    )
