"""
Remediation Advisor - suggested fixes for normalized findings.

Suggestions come from a small table of patch templates keyed by CWE.  When a
finding's weakness has no template the advisor falls back to the finding's
own mitigation text with lower confidence.
"""

import logging
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .models import RemediationSuggestion, Vulnerability

logger = logging.getLogger(__name__)

# cwe -> (explanation, patch, confidence)
PATCH_TEMPLATES = {
    "CWE-798": (
        "Load the credential from the environment instead of embedding it in source.",
        "- const apiKey = \"sk-...\";\n+ const apiKey = process.env.API_KEY;",
        90.0,
    ),
    "CWE-79": (
        "Sanitize user content before rendering it as HTML.",
        "- <div dangerouslySetInnerHTML={{ __html: user.bio }} />\n"
        "+ <div dangerouslySetInnerHTML={{ __html: DOMPurify.sanitize(user.bio) }} />",
        85.0,
    ),
    "CWE-89": (
        "Pass user input as a bound query parameter.",
        "- db.query(\"SELECT * FROM users WHERE id = \" + id)\n"
        "+ db.query(\"SELECT * FROM users WHERE id = ?\", [id])",
        85.0,
    ),
    "CWE-95": (
        "Replace dynamic evaluation with a data parser.",
        "- const value = eval(input);\n+ const value = JSON.parse(input);",
        75.0,
    ),
    "CWE-328": (
        "Switch to a modern hash function.",
        "- hashlib.md5(data)\n+ hashlib.sha256(data)",
        80.0,
    ),
    "CWE-319": (
        "Use an HTTPS endpoint.",
        "- fetch(\"http://api.example.com/data\")\n+ fetch(\"https://api.example.com/data\")",
        80.0,
    ),
    "CWE-1321": (
        "Upgrade the affected package and reject prototype keys in merged input.",
        "- \"lodash\": \"^4.17.11\"\n+ \"lodash\": \"^4.17.21\"",
        80.0,
    ),
}

FALLBACK_CONFIDENCE = 50.0


class RemediationAdvisor:
    """Produces ``RemediationSuggestion`` records for findings."""

    def suggest(self, finding: Vulnerability) -> Optional[RemediationSuggestion]:
        """Return a suggestion for *finding*, or None when nothing applies."""
        template = PATCH_TEMPLATES.get(finding.cwe_id or "")
        if template is not None:
            explanation, patch, confidence = template
            return RemediationSuggestion(
                vulnerability_id=finding.id,
                explanation=explanation,
                code_patch=patch,
                confidence=confidence,
            )
        if finding.mitigation:
            return RemediationSuggestion(
                vulnerability_id=finding.id,
                explanation=finding.mitigation,
                code_patch="",
                confidence=FALLBACK_CONFIDENCE,
            )
        return None

    def suggest_all(self, findings: Iterable[Vulnerability]) -> Mapping[str, RemediationSuggestion]:
        suggestions = {}
        for finding in findings:
            suggestion = self.suggest(finding)
            if suggestion is not None:
                suggestions[finding.id] = suggestion
        logger.debug("Generated %d remediation suggestions", len(suggestions))
        return MappingProxyType(suggestions)


__all__ = ["RemediationAdvisor", "PATCH_TEMPLATES"]
