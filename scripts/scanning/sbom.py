"""
Software Bill of Materials generation.

Builds a CycloneDX-style inventory of every dependency declared in the
scanned artifact.  Only manifest content is read (package.json entries,
requirement pins, ``name@version`` specs), so transitive dependencies do not
appear.

Example
-------
::

    bom = build_sbom(SourceArtifact.from_files([("package.json", manifest)]))
    json.dumps(bom.to_cyclonedx())
"""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Dict, List, Mapping, Optional, Tuple

from backends.dependency import DeclaredDependency, extract_dependencies
from backends.licenses import package_license
from schemas import RelatedLocation

from .models import SbomComponent, SoftwareBillOfMaterials, SourceArtifact

logger = logging.getLogger(__name__)

_NPM_FILES = {"package.json", "package-lock.json", "npm-shrinkwrap.json", "yarn.lock"}
_NPM_SUFFIXES = {".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx"}
_PYPI_FILES = {"pipfile", "pyproject.toml", "setup.py", "setup.cfg"}


def ecosystem_of(path: str) -> str:
    """Guess the package ecosystem of a manifest from its file name."""
    pure = PurePosixPath(path)
    name = pure.name.lower()
    if name in _NPM_FILES or pure.suffix.lower() in _NPM_SUFFIXES:
        return "npm"
    if name in _PYPI_FILES or name.startswith("requirements") or pure.suffix.lower() == ".py":
        return "pypi"
    return "generic"


def package_url(ecosystem: str, name: str, version: str) -> str:
    # Scoped npm names keep their namespace, with the @ percent-encoded
    if name.startswith("@"):
        name = "%40" + name[1:]
    return f"pkg:{ecosystem}/{name}@{version}"


def build_sbom(
    artifact: SourceArtifact,
    timestamp: Optional[datetime] = None,
    licenses: Optional[Mapping[str, str]] = None,
) -> SoftwareBillOfMaterials:
    """Inventory the dependencies declared across *artifact*.

    A package declared in several files becomes one component with one
    location per declaration.  Components keep first-encounter order.
    ``licenses`` overrides the bundled package license catalog.
    """
    first_seen: Dict[str, Tuple[str, DeclaredDependency]] = {}
    locations: Dict[str, List[RelatedLocation]] = {}
    for artifact_file in artifact.files:
        ecosystem = ecosystem_of(artifact_file.path)
        for dep in extract_dependencies(artifact_file.content).values():
            purl = package_url(ecosystem, dep.name, dep.version)
            first_seen.setdefault(purl, (ecosystem, dep))
            locations.setdefault(purl, []).append(
                RelatedLocation(path=artifact_file.path, line=dep.line)
            )

    inventory = tuple(
        SbomComponent(
            name=dep.name,
            version=dep.version,
            ecosystem=ecosystem,
            purl=purl,
            license_id=licenses.get(dep.name) if licenses is not None else package_license(dep.name),
            locations=tuple(locations[purl]),
        )
        for purl, (ecosystem, dep) in first_seen.items()
    )
    logger.info("SBOM for %s lists %d components", artifact.name, len(inventory))
    return SoftwareBillOfMaterials(
        serial_number=f"urn:uuid:{uuid.uuid4()}",
        timestamp=timestamp or datetime.now(timezone.utc),
        subject=artifact.name,
        components=inventory,
    )


__all__ = ["build_sbom", "ecosystem_of", "package_url"]
