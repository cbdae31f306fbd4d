"""
Context module - Token counting, cost tracking and compaction.

Token counts are heuristic estimates; see tokens.py.
"""

from .compaction import CompactionResult, auto_compact_if_needed, llm_compact, simple_compact
from .costs import (
	MODEL_PRICING,
	BudgetLevel,
	CostStats,
	CostTracker,
	ModelPricing,
	SessionCosts,
	calculate_cost,
	format_cost,
	get_model_pricing,
)
from .session import SessionStats, SessionTracker
from .tokens import (
	MODEL_CONTEXT_LIMITS,
	ContextUsage,
	SessionTokens,
	TokenEstimator,
	TokenTracker,
	estimate_conversation_tokens,
	estimate_message_tokens,
	estimate_tokens,
	get_context_limit,
)

__all__ = [
	# Tokens
	"estimate_tokens",
	"estimate_message_tokens",
	"estimate_conversation_tokens",
	"get_context_limit",
	"TokenEstimator",
	"TokenTracker",
	"SessionTokens",
	"ContextUsage",
	"MODEL_CONTEXT_LIMITS",
	# Costs
	"calculate_cost",
	"format_cost",
	"get_model_pricing",
	"ModelPricing",
	"CostStats",
	"CostTracker",
	"SessionCosts",
	"BudgetLevel",
	"MODEL_PRICING",
	# Compaction
	"CompactionResult",
	"simple_compact",
	"llm_compact",
	"auto_compact_if_needed",
	# Session
	"SessionTracker",
	"SessionStats",
]
