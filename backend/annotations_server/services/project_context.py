"""Best-effort project hints for an annotation origin.

Maps common dev-server ports to likely frameworks and summarizes the working
directory's package.json. None of this affects stored data.
"""

import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel

from annotations_server.errors import ValidationError
from annotations_server.services.query_engine import coarse_origin

logger = logging.getLogger(__name__)

COMMON_PORTS = {
    "3000": "React/Next.js",
    "5173": "Vite",
    "8080": "Vue/Webpack Dev Server",
    "4200": "Angular",
    "3001": "Express/Node.js",
}


class WorkingDirectory(BaseModel):
    path: str
    name: str


class PackageInfo(BaseModel):
    name: str | None = None
    scripts: list[str] = []
    dependencies: list[str] = []
    dev_dependencies: list[str] = []


class ProjectContext(BaseModel):
    """Hints an agent can use to pick the right origin filter."""

    origin: str
    port: str
    base_url: str
    likely_framework: str
    working_directory: WorkingDirectory
    package_info: PackageInfo | None = None
    recommended_filter: str
    all_project_urls: list[str]
    annotation_guidance: str


def read_package_info(directory: Path) -> PackageInfo | None:
    """Summarize package.json in a directory, if present and readable."""
    package_json = directory / "package.json"
    if not package_json.is_file():
        return None
    try:
        data: dict[str, Any] = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring unreadable {package_json}: {e}")
        return None
    if not isinstance(data, dict):
        return None
    return PackageInfo(
        name=data.get("name"),
        scripts=list(data.get("scripts") or {}),
        dependencies=list(data.get("dependencies") or {}),
        dev_dependencies=list(data.get("devDependencies") or {}),
    )


def build_project_context(
    origin: str, project_urls: list[str], cwd: Path | None = None
) -> ProjectContext:
    """Infer project hints for an origin.

    Raises:
        ValidationError: If the origin is not an absolute URL.
    """
    base_url = coarse_origin(origin) if isinstance(origin, str) else None
    if base_url is None:
        raise ValidationError(f"origin must be an absolute URL, got {origin!r}")

    try:
        port_number = urlsplit(origin).port
    except ValueError:
        port_number = None
    port = str(port_number) if port_number else ""
    directory = (cwd or Path.cwd()).resolve()
    recommended_filter = f"{base_url}/*"

    if len(project_urls) > 1:
        guidance = (
            f"Multiple projects detected ({len(project_urls)}). Use origin parameter: "
            f'"{recommended_filter}" to filter annotations for this specific project.'
        )
    else:
        guidance = "Single project detected. No origin filtering needed."

    return ProjectContext(
        origin=origin,
        port=port,
        base_url=base_url,
        likely_framework=COMMON_PORTS.get(port, "Unknown"),
        working_directory=WorkingDirectory(path=str(directory), name=directory.name),
        package_info=read_package_info(directory),
        recommended_filter=recommended_filter,
        all_project_urls=project_urls,
        annotation_guidance=guidance,
    )
