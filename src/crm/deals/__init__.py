"""Deal pipeline module -- stage rules, lifecycle, activity log and aggregation.

Provides the closed DealStage enum with its default-probability table,
DealLifecycleManager for create/update/delete with activity side effects,
ActivityLogger for the append-only audit log, and pure pipeline/dashboard
aggregations with a store-backed PipelineAggregator.
"""
