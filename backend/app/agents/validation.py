"""
Content heuristics for generated artifacts

These checks are advisory. Generated content that fails them is still saved;
the agent only logs a warning.
"""

import re
from typing import List

PYTHON_PATTERNS = [
    re.compile(r"^\s*import\s+\w+", re.MULTILINE),
    re.compile(r"^\s*from\s+\w+(\.\w+)*\s+import\s+", re.MULTILINE),
    re.compile(r"^\s*def\s+\w+\s*\(", re.MULTILINE),
    re.compile(r"^\s*class\s+\w+", re.MULTILINE),
    re.compile(r"\bprint\s*\("),
    re.compile(r"if\s+__name__\s*==\s*['\"]__main__['\"]"),
    re.compile(r"^\s*\w+\s*=\s*.+", re.MULTILINE),
    re.compile(r"^\s*#", re.MULTILINE),
]

MERMAID_DIAGRAM_TYPES = (
    "graph", "flowchart", "sequenceDiagram", "classDiagram", "stateDiagram",
    "stateDiagram-v2", "erDiagram", "journey", "gantt", "pie", "quadrantChart",
    "requirementDiagram", "gitGraph", "mindmap", "timeline", "sankey-beta",
    "xychart-beta", "block-beta", "C4Context",
)


def validate_python_code(content: str) -> List[str]:
    """Return warnings when the content does not look like Python"""
    if not content.strip():
        return ["Generated code is empty"]
    if not any(pattern.search(content) for pattern in PYTHON_PATTERNS):
        return ["Generated content does not look like Python code"]
    return []


def validate_mermaid_diagram(content: str) -> List[str]:
    """Return warnings when the content does not start with a known Mermaid diagram type"""
    lines = [
        line.strip() for line in content.splitlines()
        if line.strip() and not line.strip().startswith("%%")
    ]
    if not lines:
        return ["Generated diagram is empty"]
    header = lines[0].split()[0]
    if header not in MERMAID_DIAGRAM_TYPES:
        return [f"Unknown Mermaid diagram type '{header}'"]
    return []


def validate_document(content: str) -> List[str]:
    if not content.strip():
        return ["Generated document is empty"]
    return []
