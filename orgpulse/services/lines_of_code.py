"""Estimate lines of code from GitHub's per-language byte counts."""

from __future__ import annotations

from typing import Mapping

DEFAULT_FACTOR = 0.05  # ~20 bytes per line

# Lines per byte, by language.
LANGUAGE_FACTORS: dict[str, float] = {
    "JavaScript": 0.05,
    "TypeScript": 0.05,
    "Python": 0.08,
    "Java": 0.04,
    "C#": 0.04,
    "Go": 0.06,
    "Ruby": 0.07,
    "PHP": 0.05,
    "C++": 0.04,
    "C": 0.05,
    "HTML": 0.02,
    "CSS": 0.03,
    "Shell": 0.1,
    "Markdown": 0.1,
    "JSON": 0.01,
    "YAML": 0.08,
}


def estimate_lines(languages: Mapping[str, int]) -> int:
    total = 0.0
    for language, size in languages.items():
        total += int(size or 0) * LANGUAGE_FACTORS.get(language, DEFAULT_FACTOR)
    return int(round(total))
