"""
Analysis pipelines.

- orchestrator: fetch, analyze and post-process a single proposal
- job_queue: single-slot background queue behind the HTTP API
- bench: latency and cost comparison across providers
"""

from gov_ai.pipeline.orchestrator import (
    AnalysisPipeline,
    PipelineResult,
    PipelineStatus,
    get_analysis_pipeline,
    init_principles,
    load_principles,
)
from gov_ai.pipeline.job_queue import Job, JobQueue, make_job_id, run_analysis_job
from gov_ai.pipeline.bench import BenchRunner, estimate_cost, summarize_runs

__all__ = [
    "AnalysisPipeline",
    "PipelineResult",
    "PipelineStatus",
    "get_analysis_pipeline",
    "init_principles",
    "load_principles",
    "Job",
    "JobQueue",
    "make_job_id",
    "run_analysis_job",
    "BenchRunner",
    "estimate_cost",
    "summarize_runs",
]
