#!/usr/bin/env python3
"""
Example: How to use the scan orchestrator from Python

Runs a hybrid scan over a React snippet, then a project scan with a custom
AI model plugged in, and prints the summaries.
"""

import sys
from pathlib import Path

# Add scripts to path
SCRIPT_DIR = Path(__file__).parent.parent / "scripts"
sys.path.insert(0, str(SCRIPT_DIR))

from backends import AiScanner, build_default_backends
from exceptions import TransientModelError
from schemas import BackendKind, RawFinding, ScanConfiguration, Severity
from scanning import ReportBuilder, ScanOrchestrator, SourceArtifact

PROFILE_COMPONENT = """
import React from 'react';

const apiKey = "sk-abcdefghijklmnopqrstuvwxyz123456";

export function UserProfile({ user }) {
  console.log('rendering profile', user.email);
  return <div dangerouslySetInnerHTML={{ __html: user.bio }} />;
}
"""


def example_1_snippet_scan():
    """Example 1: Fused AI scan of a single snippet with GDPR checks"""
    print("\n" + "=" * 80)
    print("EXAMPLE 1: Scanning a React component")
    print("=" * 80)

    config = ScanConfiguration(
        compliance_standards={"GDPR"},
        include_exploit_details=True,
        enable_auto_remediation=True,
    )
    result = ScanOrchestrator().run(PROFILE_COMPONENT, config)

    for finding in result.findings:
        print(f"  [{finding.severity.value:<13}] {finding.title} ({finding.scanner.value})")
    print(f"\nOverall risk: {result.summary.overall_risk_score}/10")
    print(f"GDPR score:   {result.summary.compliance_scores['GDPR']:.0f}%")
    return result


class FlakyReviewModel:
    """A stand-in for a remote model that is rate limited on its first call."""

    def __init__(self):
        self.calls = 0

    def __call__(self, source, config):
        self.calls += 1
        if self.calls == 1:
            raise TransientModelError("429 Too Many Requests")
        if "eval(" not in source:
            return []
        return [
            RawFinding(
                title="Dynamic Code Evaluation",
                description="User input reaches eval().",
                severity=Severity.HIGH,
                cwe_id="95",
            )
        ]


def example_2_project_scan(output_dir):
    """Example 2: Project scan with a custom model and saved reports"""
    print("\n" + "=" * 80)
    print("EXAMPLE 2: Scanning a project with a custom AI model")
    print("=" * 80)

    backends = build_default_backends()
    backends[BackendKind.AI] = AiScanner(model_a=FlakyReviewModel())

    artifact = SourceArtifact.from_files(
        [
            ("src/calc.js", "export const calc = (expr) => eval(expr);\n"),
            ("package.json", '{"dependencies": {"lodash": "^4.17.11"}}\n'),
            ("node_modules/lodash/lodash.js", "module.exports = {};\n"),
        ],
        name="calculator",
    )
    config = ScanConfiguration(ai_model="model_a", ai_max_attempts=3, generate_sbom=True)
    result = ScanOrchestrator(backends=backends).run(artifact, config)

    print(f"Files scanned: {result.summary.files_scanned}")
    for outcome in result.summary.backend_outcomes:
        print(f"  {outcome.name:<20} {outcome.status.value:<10} {outcome.finding_count} findings")
    for component in result.sbom.components:
        print(f"  SBOM: {component.purl} ({component.license_id or 'unknown license'})")

    written = ReportBuilder().save(result, output_dir, config=config)
    for fmt, path in written.items():
        print(f"  {fmt}: {path}")
    return result


if __name__ == "__main__":
    example_1_snippet_scan()
    example_2_project_scan(sys.argv[1] if len(sys.argv) > 1 else ".fusion-scan/examples")
