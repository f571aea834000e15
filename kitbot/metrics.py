"""Prometheus metrics shared by the agent and the API."""

from prometheus_client import Counter

api_requests_total = Counter('api_requests_total', 'Total API requests', ['method', 'endpoint', 'status'])
agent_turns_total = Counter('agent_turns_total', 'Agent turns by outcome', ['outcome'])
agent_tool_calls_total = Counter('agent_tool_calls_total', 'Tool calls executed by the agent', ['tool', 'ok'])
human_handoff_requests_total = Counter('human_handoff_requests_total', 'Conversations flagged for a human operator')
lead_followups_total = Counter('lead_followups_total', 'Follow-up messages sent to quiet leads', ['ok'])
