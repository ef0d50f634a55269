"""Crisis hotline catalog.

The catalog is returned in every response, including validation failures,
rate-limit rejections and internal errors, so get() must never raise.
"""
import json
import logging
from typing import Optional

from lifeline.shared.models import CrisisResource, CrisisResourceSet

logger = logging.getLogger(__name__)


DEFAULT_CRISIS_RESOURCES = CrisisResourceSet(
    suicide="988",
    suicide_alt="1-800-273-8255",
    crisis="741741",
    emergency="911",
    resources=(
        CrisisResource(
            name="National Suicide Prevention Lifeline",
            number="988",
            description="24/7 crisis support",
            text=False,
        ),
        CrisisResource(
            name="Crisis Text Line",
            number="741741",
            description="Text HOME to connect with a crisis counselor",
            text=True,
        ),
        CrisisResource(
            name="Veterans Crisis Line",
            number="1-800-273-8255",
            description="Press 1 for veterans",
            text=False,
        ),
    ),
)


class ResourceCatalog:
    """Read-only source of crisis resources."""

    def __init__(self, resource_set: Optional[CrisisResourceSet] = None):
        self._resource_set = resource_set or DEFAULT_CRISIS_RESOURCES

    @classmethod
    def from_file(cls, path: str) -> "ResourceCatalog":
        """Load a catalog from JSON in the response wire shape.

        Falls back to the built-in US catalog if the file is missing,
        unreadable or malformed.

        Example file:
            {"US": {"suicide": "988", "suicideAlt": "...", "crisis": "...",
                    "emergency": "911"},
             "resources": [{"name": "...", "number": "...",
                            "description": "...", "text": false}]}
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)

            region = next(k for k in data if k != "resources")
            hotlines = data[region]
            resource_set = CrisisResourceSet(
                suicide=str(hotlines["suicide"]),
                suicide_alt=str(hotlines["suicideAlt"]),
                crisis=str(hotlines["crisis"]),
                emergency=str(hotlines["emergency"]),
                resources=tuple(
                    CrisisResource(
                        name=str(r["name"]),
                        number=str(r["number"]),
                        description=str(r.get("description", "")),
                        text=bool(r.get("text", False)),
                    )
                    for r in data.get("resources", [])
                ),
                region=region,
            )
        except Exception as e:
            logger.error(
                "CRISIS_RESOURCES_LOAD_FAILED",
                extra={"path": path, "error": str(e), "action": "using_defaults"}
            )
            return cls()

        if not resource_set.resources:
            logger.error(
                "CRISIS_RESOURCES_LOAD_FAILED",
                extra={"path": path, "error": "empty resource list", "action": "using_defaults"}
            )
            return cls()

        logger.info(
            "CRISIS_RESOURCES_LOADED",
            extra={"path": path, "region": region, "resource_count": len(resource_set.resources)}
        )
        return cls(resource_set)

    def get(self) -> CrisisResourceSet:
        return self._resource_set
