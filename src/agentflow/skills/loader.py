"""
Skill Loader - Discovers and parses skills from markdown files.

Skills are discovered from (first match on a name wins):
- Extra directories passed by the caller / config
- Project: .agentflow/skills/
- Project: skills/

A directory may hold SKILL-<name>.md style files or <name>/SKILL.md folders.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import yaml

logger = logging.getLogger(__name__)

SKILL_FILENAME = "SKILL.md"
MAX_DESCRIPTION_LENGTH = 200

_FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n(.*))?$", re.DOTALL)


@dataclass(frozen=True)
class Skill:
	"""A parsed skill definition."""
	name: str
	description: str
	template: str
	trigger: str | None = None
	frontmatter: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
	source_path: str = ""


def _name_from_path(path: Path) -> str:
	if path.name == SKILL_FILENAME:
		return path.parent.name.lower()
	stem = path.stem
	stem = re.sub(r"^SKILL[-_]?", "", stem, flags=re.IGNORECASE)
	return (stem or path.stem).lower()


def _extract_description(template: str) -> str:
	"""Use the first non-empty line (without markdown heading marks)."""
	for line in template.splitlines():
		if line.strip():
			cleaned = re.sub(r"^#+\s*", "", line.strip()).strip()
			if len(cleaned) > MAX_DESCRIPTION_LENGTH:
				return cleaned[:MAX_DESCRIPTION_LENGTH - 3] + "..."
			return cleaned
	return ""


def parse_skill_content(content: str, source_path: str | Path) -> Skill:
	"""
	Parse the text of a skill file.

	Expected format:
	```
	---
	name: brainstorming
	description: Design phase before coding
	trigger: (design|brainstorm|plan)
	---

	# Brainstorming
	... {{input}} ...
	```

	Front matter is optional; without it the whole file is the template.

	Raises:
		yaml.YAMLError: If the front matter is not valid YAML
		ValueError: If the front matter is not a mapping
	"""
	path = Path(source_path)
	match = _FRONTMATTER_PATTERN.match(content)

	if match:
		frontmatter = yaml.safe_load(match.group(1)) or {}
		if not isinstance(frontmatter, dict):
			raise ValueError(f"Front matter in {path} must be a mapping")
		template = (match.group(2) or "").strip()
	else:
		frontmatter = {}
		template = content.strip()

	name = str(frontmatter.get("name") or _name_from_path(path))
	description = str(frontmatter.get("description") or _extract_description(template))
	trigger = frontmatter.get("trigger")

	return Skill(
		name=name,
		description=description,
		template=template,
		trigger=str(trigger) if trigger else None,
		frontmatter=frontmatter,
		source_path=str(path),
	)


def parse_skill_file(path: str | Path) -> Skill:
	"""Read and parse a single skill file."""
	path = Path(path)
	return parse_skill_content(path.read_text(encoding="utf-8"), path)


def _is_skill_file(path: Path) -> bool:
	name = path.name
	return name.endswith(".md") and (name.startswith("SKILL") or "skill" in name.lower())


def _skill_files(directory: Path) -> list[Path]:
	files = []
	for entry in sorted(directory.iterdir()):
		if entry.is_file() and _is_skill_file(entry):
			files.append(entry)
		elif entry.is_dir() and (entry / SKILL_FILENAME).is_file():
			files.append(entry / SKILL_FILENAME)
	return files


def load_skills_from_directory(directory: str | Path) -> list[Skill]:
	"""
	Load every skill in a directory.

	Files that fail to parse are logged and skipped. A missing or unreadable
	directory yields an empty list.
	"""
	directory = Path(directory)
	if not directory.is_dir():
		return []

	try:
		files = _skill_files(directory)
	except OSError as e:
		logger.warning(f"Cannot read skills directory {directory}: {e}")
		return []

	skills: list[Skill] = []
	for skill_file in files:
		try:
			skills.append(parse_skill_file(skill_file))
		except (OSError, ValueError, yaml.YAMLError) as e:
			logger.warning(f"Failed to parse skill {skill_file}: {e}")
	return skills


def default_skill_paths(cwd: Path | None = None) -> list[Path]:
	base = cwd or Path.cwd()
	return [base / ".agentflow" / "skills", base / "skills"]


def load_all_skills(paths: Iterable[str | Path] = (), cwd: Path | None = None) -> list[Skill]:
	"""
	Load skills from the given paths followed by the default project paths.

	Names are unique: the first directory that defines a name wins.
	"""
	all_paths = [Path(p) for p in paths] + default_skill_paths(cwd)

	skills: list[Skill] = []
	seen: set[str] = set()
	for path in all_paths:
		for skill in load_skills_from_directory(path):
			if skill.name in seen:
				logger.debug(f"Skipping duplicate skill '{skill.name}' from {skill.source_path}")
				continue
			seen.add(skill.name)
			skills.append(skill)

	logger.info(f"Discovered {len(skills)} skills")
	return skills
