"""Shared utilities for visualizer views."""

from enum import Enum


class UsageLevel(str, Enum):
	"""How full something is, for coloring."""
	LOW = "LOW"
	MODERATE = "MODERATE"
	HIGH = "HIGH"
	CRITICAL = "CRITICAL"


USAGE_STYLES = {
	UsageLevel.LOW: "green",
	UsageLevel.MODERATE: "cyan",
	UsageLevel.HIGH: "yellow",
	UsageLevel.CRITICAL: "red",
}

ROLE_STYLES = {
	"system": "yellow",
	"user": "green",
	"assistant": "cyan",
}


def usage_level(percentage: float) -> UsageLevel:
	"""Bucket a usage percentage: 50 moderate, 70 high, 90 critical."""
	if percentage >= 90:
		return UsageLevel.CRITICAL
	if percentage >= 70:
		return UsageLevel.HIGH
	if percentage >= 50:
		return UsageLevel.MODERATE
	return UsageLevel.LOW


def usage_style(percentage: float) -> str:
	"""Return a Rich style string for a usage percentage."""
	return USAGE_STYLES[usage_level(percentage)]


def format_number(num: float) -> str:
	"""Format a count with K/M suffix. e.g. '950', '12.3K', '1.5M'."""
	if num >= 1_000_000:
		return f"{num / 1_000_000:.1f}M"
	if num >= 1_000:
		return f"{num / 1_000:.1f}K"
	return str(int(num))


def usage_bar(used: float, total: float, width: int = 30) -> str:
	"""Rich markup bar of filled/empty cells."""
	percentage = min(100.0, used / total * 100) if total else 0.0
	filled = round(percentage / 100 * width)
	style = usage_style(percentage)
	return f"[{style}]{'█' * filled}[/{style}][dim]{'░' * (width - filled)}[/dim]"
