#!/usr/bin/env python3
"""
License Catalog

Maps SPDX license identifiers to obligation categories and declared
packages to the license they ship under.  The dependency backend flags
packages whose license carries copyleft obligations; the SBOM builder
records the license of every component it can identify.

Categories follow Trivy's license classification, from most to least
restrictive: FORBIDDEN, RESTRICTED, RECIPROCAL, NOTICE, UNENCUMBERED.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Optional

from schemas import Severity

__all__ = [
    "LicenseCategory",
    "LICENSE_CATEGORIES",
    "PACKAGE_LICENSES",
    "classify_license",
    "package_license",
    "license_severity",
]

logger = logging.getLogger(__name__)


class LicenseCategory(str, Enum):
    """License obligation categories ordered from most to least restrictive."""

    FORBIDDEN = "forbidden"
    RESTRICTED = "restricted"
    RECIPROCAL = "reciprocal"
    NOTICE = "notice"
    UNENCUMBERED = "unencumbered"
    UNKNOWN = "unknown"


LICENSE_CATEGORIES: Dict[str, LicenseCategory] = {
    # Forbidden
    "AGPL-3.0-only": LicenseCategory.FORBIDDEN,
    "AGPL-3.0-or-later": LicenseCategory.FORBIDDEN,
    "SSPL-1.0": LicenseCategory.FORBIDDEN,
    # Restricted
    "GPL-2.0-only": LicenseCategory.RESTRICTED,
    "GPL-2.0-or-later": LicenseCategory.RESTRICTED,
    "GPL-3.0-only": LicenseCategory.RESTRICTED,
    "GPL-3.0-or-later": LicenseCategory.RESTRICTED,
    "LGPL-2.1-only": LicenseCategory.RESTRICTED,
    "LGPL-3.0-only": LicenseCategory.RESTRICTED,
    # Reciprocal
    "MPL-2.0": LicenseCategory.RECIPROCAL,
    "EPL-2.0": LicenseCategory.RECIPROCAL,
    "CDDL-1.0": LicenseCategory.RECIPROCAL,
    # Notice
    "MIT": LicenseCategory.NOTICE,
    "Apache-2.0": LicenseCategory.NOTICE,
    "BSD-2-Clause": LicenseCategory.NOTICE,
    "BSD-3-Clause": LicenseCategory.NOTICE,
    "ISC": LicenseCategory.NOTICE,
    "PSF-2.0": LicenseCategory.NOTICE,
    # Unencumbered
    "Unlicense": LicenseCategory.UNENCUMBERED,
    "CC0-1.0": LicenseCategory.UNENCUMBERED,
    "0BSD": LicenseCategory.UNENCUMBERED,
}

_LICENSE_CATEGORIES_LOWER = {k.lower(): v for k, v in LICENSE_CATEGORIES.items()}

# Keyed by lowercase package name, as produced by extract_dependencies
PACKAGE_LICENSES: Dict[str, str] = {
    # npm
    "lodash": "MIT",
    "express": "MIT",
    "moment": "MIT",
    "axios": "MIT",
    "react": "MIT",
    "minimist": "MIT",
    "set-value": "MIT",
    "jsonwebtoken": "MIT",
    "ffmpeg-static": "GPL-3.0-or-later",
    # PyPI
    "requests": "Apache-2.0",
    "pyyaml": "MIT",
    "pydantic": "MIT",
    "tenacity": "Apache-2.0",
    "flask": "BSD-3-Clause",
    "django": "BSD-3-Clause",
    "numpy": "BSD-3-Clause",
    "certifi": "MPL-2.0",
    "paramiko": "LGPL-2.1-only",
    "chardet": "LGPL-2.1-only",
    "psycopg2": "LGPL-3.0-only",
    "mysql-connector-python": "GPL-2.0-only",
    "pyqt5": "GPL-3.0-only",
}

# Categories that produce a finding, and how severe it is
_FLAGGED_CATEGORIES = {
    LicenseCategory.FORBIDDEN: Severity.LOW,
    LicenseCategory.RESTRICTED: Severity.LOW,
    LicenseCategory.RECIPROCAL: Severity.INFORMATIONAL,
}


def classify_license(spdx_id: Optional[str]) -> LicenseCategory:
    """Return the category of *spdx_id*; the lookup is case-insensitive."""
    if not spdx_id:
        return LicenseCategory.UNKNOWN
    category = _LICENSE_CATEGORIES_LOWER.get(spdx_id.lower())
    if category is None:
        logger.debug("Unknown license SPDX ID: %s", spdx_id)
        return LicenseCategory.UNKNOWN
    return category


def package_license(package: str) -> Optional[str]:
    return PACKAGE_LICENSES.get(package.lower())


def license_severity(spdx_id: Optional[str]) -> Optional[Severity]:
    """Severity of a license finding for *spdx_id*, or None when it is not flagged."""
    return _FLAGGED_CATEGORIES.get(classify_license(spdx_id))
