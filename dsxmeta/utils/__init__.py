"""
Shared utilities for dsxmeta.

Common functionality used across contexts:
- Logger setup with provenance
- Timestamps
- YAML configuration loading
"""

from dsxmeta.utils.config import load_yaml_config
from dsxmeta.utils.timestamp import now, now_exact

__all__ = ["load_yaml_config", "now", "now_exact"]
