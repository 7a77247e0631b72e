"""
Few-shot fixture loader.
The same versioned fixture primes the oracle and serves as golden regression data for the router.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core import config
from util.logging import logger

FIXTURE_VERSION = 1


def load_few_shot_fixture(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the raw fixture document. A missing or unreadable fixture yields no examples."""
    fixture_path = Path(path or config.FEW_SHOT_FIXTURE)
    try:
        with open(fixture_path, "r", encoding="utf-8") as f:
            fixture = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Few-shot fixture unavailable at {fixture_path}: {e}")
        return {"version": FIXTURE_VERSION, "examples": []}

    if fixture.get("version") != FIXTURE_VERSION:
        logger.warning(
            f"Few-shot fixture version {fixture.get('version')} does not match expected {FIXTURE_VERSION}"
        )
    return fixture


def load_few_shot_examples(path: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return the list of {command, call, expected} examples."""
    return list(load_few_shot_fixture(path).get("examples", []))
