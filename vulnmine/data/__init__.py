from vulnmine.data.classify import classify_message
from vulnmine.data.dedup import DedupStore, content_hash
from vulnmine.data.pipeline import MiningPipeline, PipelineAudit, PipelineOptions, PipelineResult
from vulnmine.data.schema import CandidateSample, Category, CommitRecord, DatasetRecord, FileDiff, ScoreSignals

__all__ = [
    "CandidateSample",
    "Category",
    "CommitRecord",
    "DatasetRecord",
    "DedupStore",
    "FileDiff",
    "MiningPipeline",
    "PipelineAudit",
    "PipelineOptions",
    "PipelineResult",
    "ScoreSignals",
    "classify_message",
    "content_hash",
]
