"""
Audited batch stages.

Modules:
  base      — ``PipelineStage`` ABC writing a ``run_metadata`` row per run.
  evaluate  — ``EvaluateStage``: the daily evaluator batch.
  seed      — ``SeedAnalystsStage``: load analysts from the seed JSON.
"""
