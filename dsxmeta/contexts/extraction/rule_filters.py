"""
Transform rule filtering.

Generated transformer code is mostly boilerplate. The filter keeps
assignment-like lines and drops lines matching a denylist. This is a
heuristic denoising step, not a code parser: the denylists live in
extraction_config.yaml because the dialect's boilerplate vocabulary grows
with each product revision.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from dotenv import load_dotenv

from dsxmeta.utils.config import load_yaml_config

load_dotenv()
EXTRACTION_CONFIG_PATH = Path(
    os.getenv("DSX_EXTRACTION_CONFIG", Path(__file__).parent / "extraction_config.yaml")
)

_WHITESPACE = re.compile(r"\s+")


def load_extraction_config(config_path: Optional[Path] = None) -> dict:
    """
    Load the extraction config.

    Args:
        config_path: Optional path (defaults to DSX_EXTRACTION_CONFIG or the packaged file)

    Returns:
        Config dict
    """
    return load_yaml_config(config_path or EXTRACTION_CONFIG_PATH)


@dataclass(frozen=True)
class RuleFilter:
    """
    Denylist filter for transform rule lines.

    Attributes:
        operator: Substring a line must contain to count as a rule
        exclude_prefixes: Stripped lines starting with any of these are dropped
        exclude_substrings: Lines containing any of these are dropped
    """

    operator: str = "="
    exclude_prefixes: Tuple[str, ...] = ()
    exclude_substrings: Tuple[str, ...] = ()

    @classmethod
    def from_rules(cls, rules: dict) -> "RuleFilter":
        """Build the filter from an already-loaded transform_rules mapping."""
        return cls(
            operator=rules.get("operator", "="),
            exclude_prefixes=tuple(rules.get("exclude_prefixes", ())),
            exclude_substrings=tuple(rules.get("exclude_substrings", ())),
        )

    def keeps(self, line: str) -> bool:
        """
        Check whether a line survives the filter.

        Example:
            >>> RuleFilter(exclude_substrings=("NullSet",)).keeps("out.X = in.X;")
            True
        """
        stripped = line.strip()
        if not stripped or self.operator not in stripped:
            return False
        if any(stripped.startswith(prefix) for prefix in self.exclude_prefixes):
            return False
        return not any(token in stripped for token in self.exclude_substrings)

    def clean(self, lines: Iterable[str]) -> List[str]:
        """Return surviving lines with internal whitespace collapsed."""
        return [_WHITESPACE.sub(" ", line.strip()) for line in lines if self.keeps(line)]
