"""
Skill Matcher - Scores skills against free-text input.

Scoring (first rule that fires wins for a skill):
- 100: trigger regex matches the input (case-insensitive)
- 80:  skill name appears in the input (case-insensitive)
- 15 per description keyword found in the input, capped at 60

Skills scoring zero are left out. Results are ordered by score with a stable
sort, so equal scores keep the order the skills were given in.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .loader import Skill

logger = logging.getLogger(__name__)

TRIGGER_SCORE = 100
NAME_SCORE = 80
KEYWORD_SCORE = 15
MAX_KEYWORD_SCORE = 60

# Scores at or above this are executed automatically by the turn loop
AUTO_INVOKE_SCORE = NAME_SCORE

STOP_WORDS = frozenset({
	"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
	"of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
	"be", "have", "has", "had", "do", "does", "did", "will", "would",
	"could", "should", "may", "might", "must", "can", "this", "that",
	"these", "those", "i", "you", "he", "she", "it", "we", "they",
})


@dataclass(frozen=True)
class MatchResult:
	"""A skill with its routing score and a human-readable reason."""
	skill: Skill
	score: int
	reason: str


def extract_keywords(text: str) -> list[str]:
	"""Lowercase alphanumeric words longer than two characters, minus stopwords."""
	words = re.sub(r"[^\w\s]", " ", text.lower()).split()
	return [w for w in words if len(w) > 2 and w not in STOP_WORDS]


def _trigger_matches(skill: Skill, text: str) -> bool:
	if not skill.trigger:
		return False
	try:
		return re.search(skill.trigger, text, re.IGNORECASE) is not None
	except re.error as e:
		logger.warning(f"Invalid trigger for skill '{skill.name}': {e}")
		return False


def score_skill(skill: Skill, text: str) -> Optional[MatchResult]:
	"""Score one skill, or None when nothing matches."""
	if _trigger_matches(skill, text):
		return MatchResult(skill, TRIGGER_SCORE, "Trigger pattern matched")

	if skill.name and skill.name.lower() in text.lower():
		return MatchResult(skill, NAME_SCORE, "Skill name found in input")

	input_keywords = set(extract_keywords(text))
	matched: list[str] = []
	for keyword in extract_keywords(skill.description):
		if keyword in input_keywords and keyword not in matched:
			matched.append(keyword)

	if not matched:
		return None

	score = min(MAX_KEYWORD_SCORE, KEYWORD_SCORE * len(matched))
	return MatchResult(skill, score, f"Matched keywords: {', '.join(matched)}")


def match_skills(text: str, skills: Iterable[Skill]) -> list[MatchResult]:
	"""Rank skills for the input, highest score first."""
	results = [r for r in (score_skill(s, text) for s in skills) if r is not None]
	return sorted(results, key=lambda r: r.score, reverse=True)


def find_best_skill(text: str, skills: Iterable[Skill]) -> Optional[Skill]:
	"""Return the top-ranked skill, or None when nothing matches."""
	matches = match_skills(text, skills)
	return matches[0].skill if matches else None
