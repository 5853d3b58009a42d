"""
Collection pipeline for the Stack Overflow catalog.

Modules:
    client: Stack Exchange API client with retry and exponential backoff
    stackoverflow: Domain queries (questions, answers, comments, totals)
    state: Collection lifecycle states with validated transitions
    checkpoint: Crash-safe JSON checkpoint of collection progress
    collector: Phase orchestrator that runs and resumes a collection

Subpackages:
    loaders: Batched insert-or-skip writer for the relational store
    transformers: Identifier extraction from post bodies

Architecture:
    One sequential worker walks the phases in order:

    1. Questions - page through the tag's questions
    2. Answers - fetch answers in chunks of up to 100 question ids
    3. Comments - question comments, then answer comments
    4. Save - persist the whole catalog in committed batches

    Progress is checkpointed throughout, so a killed run resumes where the
    last saved checkpoint left it.

Usage:
    from crawler.client import ApiClient
    from crawler.stackoverflow import StackOverflowService
    from crawler.checkpoint import CollectionCheckpoint
    from crawler.collector import DataCollector
    from crawler.loaders.postgres_loader import PostgresLoader

Example:
    async with ApiClient(settings) as client:
        service = StackOverflowService(client, page_size=100, tagged="java")
        checkpoint = CollectionCheckpoint.load("collection_progress.json")
        collector = DataCollector(service, PostgresLoader(engine), checkpoint)

        async with collector.loader.bulk_load():
            await collector.collect_data()

Error Handling:
    Request failures surface as RequestFailed once retries are spent, storage
    failures as PersistenceError. Either leaves the checkpoint in FAILED and
    the next run starts again from the top, skipping completed work.
"""

__all__ = [
    "client",
    "stackoverflow",
    "state",
    "checkpoint",
    "collector",
]
