"""
Cost Calculator - Track and estimate API costs.

Pricing is a static USD-per-million-token table. It will drift from what
providers actually charge; treat results as estimates.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .tokens import best_key_match

logger = logging.getLogger(__name__)

LOCAL_PROVIDERS = {"ollama"}


@dataclass(frozen=True)
class ModelPricing:
	"""USD per 1M tokens."""
	input_per_1m: float
	output_per_1m: float

	@property
	def is_free(self) -> bool:
		return self.input_per_1m == 0 and self.output_per_1m == 0


FREE = ModelPricing(0.0, 0.0)
DEFAULT_PRICING = ModelPricing(1.00, 2.00)

MODEL_PRICING: dict[str, ModelPricing] = {
	# OpenAI
	"gpt-4o": ModelPricing(2.50, 10.00),
	"gpt-4o-mini": ModelPricing(0.15, 0.60),
	"gpt-4-turbo": ModelPricing(10.00, 30.00),
	"gpt-4": ModelPricing(30.00, 60.00),
	"gpt-4-32k": ModelPricing(60.00, 120.00),
	"gpt-3.5-turbo": ModelPricing(0.50, 1.50),
	# Anthropic
	"claude-3-opus": ModelPricing(15.00, 75.00),
	"claude-3-sonnet": ModelPricing(3.00, 15.00),
	"claude-3-haiku": ModelPricing(0.25, 1.25),
	"claude-3.5-sonnet": ModelPricing(3.00, 15.00),
	"claude-3.5-haiku": ModelPricing(1.00, 5.00),
	# Groq
	"llama-3.3-70b-versatile": ModelPricing(0.59, 0.79),
	"llama-3.1-70b-versatile": ModelPricing(0.59, 0.79),
	"llama-3.1-8b-instant": ModelPricing(0.05, 0.08),
	"mixtral-8x7b-32768": ModelPricing(0.24, 0.24),
	"gemma-7b-it": ModelPricing(0.07, 0.07),
	# Together AI
	"together/llama-3.3-70b": ModelPricing(0.88, 0.88),
	"together/mixtral-8x7b": ModelPricing(0.60, 0.60),
	# Local model families (Ollama)
	"ollama": FREE,
	"llama3.3": FREE,
	"llama3.3:70b": FREE,
	"codellama": FREE,
	"mistral": FREE,
	"mixtral": FREE,
}


def get_model_pricing(model: str, provider: Optional[str] = None) -> ModelPricing:
	"""
	Get pricing for a model.

	Local providers are always free. Otherwise the best table match is used,
	falling back to a generic paid default for unknown models.
	"""
	if provider and provider.lower() in LOCAL_PROVIDERS:
		return FREE

	key = best_key_match(model, MODEL_PRICING)
	if key is None:
		return DEFAULT_PRICING
	return MODEL_PRICING[key]


@dataclass
class CostStats:
	"""Cost of one tracked exchange."""
	input_cost: float
	output_cost: float
	total_cost: float
	input_tokens: int
	output_tokens: int
	model: str
	is_local: bool


def calculate_cost(
	input_tokens: int,
	output_tokens: int,
	model: str,
	provider: Optional[str] = None,
) -> CostStats:
	"""Calculate the USD cost of a number of input/output tokens."""
	pricing = get_model_pricing(model, provider)
	input_cost = input_tokens / 1_000_000 * pricing.input_per_1m
	output_cost = output_tokens / 1_000_000 * pricing.output_per_1m

	return CostStats(
		input_cost=input_cost,
		output_cost=output_cost,
		total_cost=input_cost + output_cost,
		input_tokens=input_tokens,
		output_tokens=output_tokens,
		model=model,
		is_local=pricing.is_free,
	)


def format_cost(cost: float) -> str:
	"""Format a cost for display."""
	if cost == 0:
		return "$0.00 (free)"
	if cost < 0.01:
		return f"${cost:.6f}"
	if cost < 1:
		return f"${cost:.4f}"
	return f"${cost:.2f}"


class BudgetLevel(str, Enum):
	"""How much of the configured budget has been spent."""
	OK = "ok"
	NOTICE = "notice"  # >= 70%
	WARNING = "warning"  # >= 90%
	EXCEEDED = "exceeded"  # >= 100%


BUDGET_WARNINGS = {
	BudgetLevel.NOTICE: "Budget usage at 70%",
	BudgetLevel.WARNING: "Budget almost exhausted (>90%)",
	BudgetLevel.EXCEEDED: "Budget exceeded!",
}


def budget_level(spent: float, budget: Optional[float]) -> BudgetLevel:
	if not budget:
		return BudgetLevel.OK
	percentage = spent / budget * 100
	if percentage >= 100:
		return BudgetLevel.EXCEEDED
	if percentage >= 90:
		return BudgetLevel.WARNING
	if percentage >= 70:
		return BudgetLevel.NOTICE
	return BudgetLevel.OK


@dataclass
class CostEntry:
	"""One tracked turn."""
	timestamp: datetime
	input_tokens: int
	output_tokens: int
	cost: float
	model: str


@dataclass
class SessionCosts:
	"""Cost summary for a session."""
	current_cost: float
	breakdown: list[CostEntry] = field(default_factory=list)
	budget_remaining: Optional[float] = None
	budget_warning: Optional[str] = None


class CostTracker:
	"""Append-only per-session cost ledger with budget thresholds."""

	def __init__(
		self,
		model: str = "default",
		provider: str = "ollama",
		max_budget: Optional[float] = None,
	):
		self.model = model
		self.provider = provider
		self.max_budget = max_budget
		self._entries: list[CostEntry] = []
		self._total_cost = 0.0

	def track(self, input_tokens: int, output_tokens: int) -> CostStats:
		"""Record a conversation turn and return its cost."""
		stats = calculate_cost(input_tokens, output_tokens, self.model, self.provider)
		self._entries.append(CostEntry(
			timestamp=datetime.now(),
			input_tokens=input_tokens,
			output_tokens=output_tokens,
			cost=stats.total_cost,
			model=self.model,
		))
		self._total_cost += stats.total_cost

		level = self.budget_level()
		if level != BudgetLevel.OK:
			logger.warning(f"{BUDGET_WARNINGS[level]} ({format_cost(self._total_cost)} of {format_cost(self.max_budget)})")

		return stats

	def budget_level(self) -> BudgetLevel:
		return budget_level(self._total_cost, self.max_budget)

	def get_budget_warning(self) -> Optional[str]:
		return BUDGET_WARNINGS.get(self.budget_level())

	def is_budget_exceeded(self) -> bool:
		if not self.max_budget:
			return False
		return self._total_cost >= self.max_budget

	def get_stats(self) -> SessionCosts:
		stats = SessionCosts(
			current_cost=self._total_cost,
			breakdown=list(self._entries),
		)
		if self.max_budget:
			stats.budget_remaining = max(0.0, self.max_budget - self._total_cost)
			stats.budget_warning = self.get_budget_warning()
		return stats

	def get_current_cost(self) -> float:
		return self._total_cost

	def set_model(self, model: str, provider: Optional[str] = None) -> None:
		self.model = model
		if provider:
			self.provider = provider

	def set_budget(self, max_budget: Optional[float]) -> None:
		self.max_budget = max_budget

	def reset(self) -> None:
		"""Clear every entry and the running total."""
		self._entries = []
		self._total_cost = 0.0
