"""Render fetcher evidence as delimited text blocks for the scoring prompt.

Every function here is total: any combination of present or missing optional
fields produces a block, never an exception.
"""

import json

from .evidence import DeckEvidence, DemoEvidence, RepositoryEvidence

REPOSITORY_HEADER = "=== GITHUB REPOSITORY ANALYSIS ==="
REPOSITORY_FOOTER = "=== END GITHUB REPOSITORY ANALYSIS ==="
DECK_HEADER = "=== PITCH DECK ANALYSIS ==="
DECK_FOOTER = "=== END PITCH DECK ANALYSIS ==="
DEMO_HEADER = "=== DEMO WEBSITE ANALYSIS ==="
DEMO_FOOTER = "=== END DEMO WEBSITE ANALYSIS ==="


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _block(header: str, lines: list[str], footer: str) -> str:
    body = "\n".join(lines).strip("\n")
    return f"\n{header}\n\n{body}\n\n{footer}\n"


def _manifest_dependencies(raw: str) -> list[str]:
    try:
        manifest = json.loads(raw)
    except ValueError:
        return [raw]
    if not isinstance(manifest, dict):
        return [raw]
    deps = manifest.get("dependencies") or {}
    dev_deps = manifest.get("devDependencies") or {}
    return [
        f"Dependencies: {', '.join(deps) if isinstance(deps, dict) and deps else 'None'}",
        f"Dev Dependencies: {', '.join(dev_deps) if isinstance(dev_deps, dict) and dev_deps else 'None'}",
    ]


def format_repository_evidence(evidence: RepositoryEvidence) -> str:
    if not evidence.accessible:
        return format_repository_unavailable(evidence.url, evidence.error)

    lines: list[str] = []
    stats = evidence.stats
    if stats is not None:
        lines.append("Repository Stats:")
        lines.append(f"- Language: {stats.language or 'Not specified'}")
        lines.append(f"- Stars: {stats.stars}")
        lines.append(f"- Forks: {stats.forks}")
        lines.append(f"- Open Issues: {stats.open_issues}")
        lines.append(f"- Last Updated: {stats.updated_at or 'unknown'}")
        if stats.description:
            lines.append(f"- Description: {stats.description}")
        lines.append("")

    if evidence.summary:
        lines.append(f"Summary: {evidence.summary}")
        lines.append("")

    has_manifest = any(evidence.has_file(key) for key in ("package_json", "requirements_txt", "pyproject_toml"))
    lines.append("Files Found:")
    lines.append(f"- README: {_yes_no(evidence.has_file('readme'))}")
    lines.append(f"- Dependency manifest: {_yes_no(has_manifest)}")
    lines.append(f"- Main source file: {_yes_no(evidence.has_file('main_source'))}")
    lines.append(f"- Tests: {_yes_no(evidence.has_file('tests'))}")
    lines.append(f"- .env.example: {_yes_no(evidence.has_file('env_example'))}")
    lines.append(f"- LICENSE: {_yes_no(evidence.has_file('license'))}")
    lines.append("")

    files = evidence.files
    if "readme" in files:
        lines.extend(["--- README ---", files["readme"], ""])
    if "package_json" in files:
        lines.append("--- package.json (dependencies) ---")
        lines.extend(_manifest_dependencies(files["package_json"]))
        lines.append("")
    if "requirements_txt" in files:
        lines.extend(["--- requirements.txt ---", files["requirements_txt"], ""])
    if "pyproject_toml" in files:
        lines.extend(["--- pyproject.toml ---", files["pyproject_toml"], ""])
    if "main_source" in files:
        path = evidence.main_source_path or "unknown path"
        lines.extend([f"--- Main Source File (excerpt): {path} ---", files["main_source"], ""])
    if evidence.test_paths:
        lines.append("Test files:")
        lines.extend(f"- {path}" for path in evidence.test_paths[:20])
        lines.append("")
    elif "tests" in files:
        lines.extend(["Tests found - project has test coverage", ""])
    if "env_example" in files:
        lines.extend([".env.example found - configuration is documented", ""])
    if "license" in files:
        lines.extend(["LICENSE found - project is licensed", ""])

    return _block(REPOSITORY_HEADER, lines, REPOSITORY_FOOTER)


def format_repository_unavailable(url: str | None, error: str | None = None) -> str:
    lines = [
        "WARNING: GitHub repository not accessible or invalid URL",
        f"- URL: {url or 'not provided'}",
    ]
    if error:
        lines.append(f"- Error: {error}")
    lines.append("Note: Scoring will be based primarily on the writeup.")
    return _block(REPOSITORY_HEADER, lines, REPOSITORY_FOOTER)


def format_repository_unsupported(url: str) -> str:
    lines = [
        "WARNING: Repository host is not supported for automated inspection",
        f"- URL: {url}",
        "Note: Code could not be verified; weigh the writeup claims accordingly.",
    ]
    return _block(REPOSITORY_HEADER, lines, REPOSITORY_FOOTER)


def format_deck_evidence(evidence: DeckEvidence) -> str:
    lines = [
        f"Type: {evidence.deck_type.value.replace('_', ' ').upper()}",
        f"Accessible: {_yes_no(evidence.accessible)}",
    ]
    if evidence.summary:
        lines.append(f"Summary: {evidence.summary}")

    if evidence.text_content:
        lines.extend(["", "--- Pitch Deck Content ---", evidence.text_content])
    elif evidence.accessible:
        lines.extend(
            [
                "",
                "Note: Pitch deck is accessible but text extraction is not available for this format.",
                "The project has provided a pitch deck.",
            ]
        )
    else:
        lines.extend(["", f"WARNING: Pitch deck not accessible: {evidence.error or 'Unknown error'}"])

    return _block(DECK_HEADER, lines, DECK_FOOTER)


def format_demo_evidence(evidence: DemoEvidence) -> str:
    lines: list[str] = []
    if evidence.is_live:
        lines.append("Demo is LIVE and accessible")
        lines.append(f"- Status: HTTP {evidence.status_code if evidence.status_code is not None else 'unknown'}")
        if evidence.response_time_ms is not None:
            lines.append(f"- Response Time: {evidence.response_time_ms}ms")
        if evidence.tech_hints:
            lines.append("")
            lines.append("Tech Stack Detected:")
            lines.extend(f"- {hint}" for hint in evidence.tech_hints)
        lines.append("")
        lines.append("Note: The project has a live, working demo.")
    else:
        lines.append("Demo is NOT accessible")
        if evidence.error:
            lines.append(f"- Error: {evidence.error}")
        if evidence.status_code is not None:
            lines.append(f"- Status Code: {evidence.status_code}")
        lines.append("")
        lines.append("Note: Demo may be down, private, or the URL is incorrect. Score accordingly.")

    return _block(DEMO_HEADER, lines, DEMO_FOOTER)


FAILURE_HEADERS = {
    "repository": (REPOSITORY_HEADER, REPOSITORY_FOOTER),
    "deck": (DECK_HEADER, DECK_FOOTER),
    "demo": (DEMO_HEADER, DEMO_FOOTER),
}


def format_fetch_failure(source: str) -> str:
    """Fixed block used when a fetcher failed outright."""
    header, footer = FAILURE_HEADERS.get(source, (f"=== {source.upper()} ANALYSIS ===", f"=== END {source.upper()} ANALYSIS ==="))
    lines = [
        f"WARNING: {source} evidence could not be collected due to an internal error.",
        "Note: Evaluate this source from the writeup only.",
    ]
    return _block(header, lines, footer)
