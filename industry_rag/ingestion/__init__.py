"""Ingestion package: the per-document pipeline and batch entrypoints.

See pipeline.py for IngestionPipeline and ingest_directory.py for the CLI that
ingests a folder of documents.
"""
