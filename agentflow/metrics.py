"""Prometheus metrics for agents and LLM usage."""

from prometheus_client import Counter, Histogram


agent_executions_total = Counter(
    'agentflow_agent_executions_total',
    'Total agent executions',
    ['agent', 'status']
)

agent_execution_duration_seconds = Histogram(
    'agentflow_agent_execution_duration_seconds',
    'Agent execution duration in seconds',
    ['agent'],
    buckets=[0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120]
)

pipeline_runs_total = Counter(
    'agentflow_pipeline_runs_total',
    'Total orchestrator pipeline runs',
    ['status']
)

llm_tokens_total = Counter(
    'agentflow_llm_tokens_total',
    'Tokens consumed per provider',
    ['provider']
)

llm_cost_usd_total = Counter(
    'agentflow_llm_cost_usd_total',
    'Spend in USD per provider',
    ['provider']
)

llm_cache_requests_total = Counter(
    'agentflow_llm_cache_requests_total',
    'LLM response cache lookups',
    ['result']  # hit/miss
)
