import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from lingua_eval.core.exceptions import ConfigurationError
from lingua_eval.models.submission import DEFAULT_LEVEL, LEVELS, normalize_level

REQUIRED_TABLES = (
    "level_expectations",
    "error_focus",
    "feedback_guidance",
    "question_levels",
    "activity_guidelines",
)


class PromptLoader:
    """Load the versioned, per-CEFR-band lookup tables used to build prompts.

    Each table is a JSON file ``<prompts_dir>/<version>/<table>.json`` keyed by
    level (A1..C2). Tables are validated on load and exposed read-only.
    """

    def __init__(self, prompts_dir: Optional[str] = None, version: str = "v1.0.0") -> None:
        """
        - If `prompts_dir` is None, resolve to `<package_root>/prompts`.
        - If `prompts_dir` is provided and not found relative to the CWD,
          also try resolving it relative to the package root.
        """
        package_root = Path(__file__).resolve().parents[1]

        if prompts_dir is None:
            self.prompts_dir: Path = package_root / "prompts"
        else:
            candidate = Path(prompts_dir)
            self.prompts_dir = candidate if candidate.exists() else (package_root / candidate)

        self.version = version
        self._tables: Dict[str, Mapping[str, Any]] = {}
        self._load_tables()

    def _load_tables(self) -> None:
        version_dir = self.prompts_dir / self.version

        if not version_dir.exists():
            raise ConfigurationError(
                f"Prompts directory not found: {version_dir}",
                {"version": self.version},
            )

        for table in REQUIRED_TABLES:
            json_file = version_dir / f"{table}.json"
            if not json_file.exists():
                raise ConfigurationError(f"Required prompt table not found: {json_file}")

            try:
                with open(json_file, "r", encoding="utf-8") as file:
                    data: Dict[str, Any] = json.load(file)
            except (OSError, json.JSONDecodeError) as exc:
                raise ConfigurationError(f"Error loading prompt table {json_file}: {exc}") from exc

            missing = [level for level in LEVELS if level not in data]
            if missing:
                raise ConfigurationError(f"Missing levels {missing} in {json_file}")

            self._tables[table] = MappingProxyType(
                {level: MappingProxyType(v) if isinstance(v, dict) else v for level, v in data.items()}
            )

    def table(self, name: str) -> Mapping[str, Any]:
        if name not in self._tables:
            raise ConfigurationError(
                f"No prompt table named '{name}'. Available tables: {list(self._tables)}"
            )
        return self._tables[name]

    def for_level(self, name: str, level: Optional[str]) -> Any:
        """Entry of table ``name`` for ``level``; unknown levels fall back to B1."""
        entries = self.table(name)
        return entries.get(normalize_level(level), entries[DEFAULT_LEVEL])

    def get_available_tables(self) -> List[str]:
        return list(self._tables.keys())
