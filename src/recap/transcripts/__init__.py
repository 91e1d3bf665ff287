"""Transcript ingestion -- extractor pipeline and daily finalize job.

Provides TranscriptPipeline, which turns one transcript into a digest
append, and the finalize task that reports on yesterday's digests.
"""
