"""Skills module - Skill discovery, routing, and execution."""

from .loader import Skill, load_all_skills, load_skills_from_directory, parse_skill_file
from .matcher import AUTO_INVOKE_SCORE, MatchResult, find_best_skill, match_skills
from .runner import SkillRunResult, get_skill, interpolate_template, run_skill, run_skill_silent

__all__ = [
	"Skill",
	"parse_skill_file",
	"load_skills_from_directory",
	"load_all_skills",
	"MatchResult",
	"match_skills",
	"find_best_skill",
	"AUTO_INVOKE_SCORE",
	"SkillRunResult",
	"get_skill",
	"interpolate_template",
	"run_skill",
	"run_skill_silent",
]
