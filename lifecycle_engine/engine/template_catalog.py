"""
Template Catalog for the Lifecycle Engine.

Reads the optional lifecycle templates configuration file and provides
the checklist items and document requirements to attach to a new
lifecycle, scoped by department and lifecycle type.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..models import ChecklistItem, DocumentRequirement, DocumentStatus, LifecycleType

logger = logging.getLogger(__name__)


class TemplateCatalog:
    """
    Maps departments and lifecycle types to checklist and document templates.

    The templates file has a ``default`` section and an optional
    ``departments`` section keyed by department id; each section is keyed by
    lifecycle type (``Onboarding``, ``Offboarding``, ...) and holds
    ``checklist`` and ``documents`` lists. Department entries extend the
    defaults. The standard task plan never depends on this catalog.
    """

    def __init__(self, templates_file: Optional[Union[str, Path]] = None):
        """
        Initialize the template catalog.

        Args:
            templates_file: Path to the YAML templates file.
                            If None, the catalog is empty.
        """
        self.templates_file = Path(templates_file) if templates_file else None
        self.templates: Dict[str, Any] = {}

        self._load_templates()

    def _load_templates(self):
        """Load templates from the YAML file."""
        if not self.templates_file:
            return

        if not self.templates_file.exists():
            logger.warning(f"Templates file not found: {self.templates_file}")
            return

        with open(self.templates_file, encoding='utf-8') as f:
            self.templates = yaml.safe_load(f) or {}
        logger.info(f"Loaded lifecycle templates from {self.templates_file}")

    def _sections(self, department_id: str, lifecycle_type: LifecycleType) -> List[Dict[str, Any]]:
        sections = []
        default = self.templates.get("default", {}).get(lifecycle_type.value)
        if default:
            sections.append(default)

        department = self.templates.get("departments", {}).get(department_id, {})
        dept_section = department.get(lifecycle_type.value)
        if dept_section:
            sections.append(dept_section)
        return sections

    def get_checklist(self, department_id: str, lifecycle_type: LifecycleType) -> List[ChecklistItem]:
        """
        Build checklist items for a new lifecycle.

        Args:
            department_id: Department the lifecycle belongs to
            lifecycle_type: Type of the lifecycle

        Returns:
            List of fresh, uncompleted checklist items
        """
        items = []
        for section in self._sections(department_id, lifecycle_type):
            for entry in section.get("checklist", []):
                if isinstance(entry, str):
                    entry = {"item": entry}
                items.append(
                    ChecklistItem(
                        item=entry["item"],
                        is_required=entry.get("required", True),
                        notes=entry.get("instructions"),
                    )
                )
        return items

    def get_documents(self, department_id: str, lifecycle_type: LifecycleType) -> List[DocumentRequirement]:
        """Build document requirements for a new lifecycle."""
        documents = []
        for section in self._sections(department_id, lifecycle_type):
            for entry in section.get("documents", []):
                if isinstance(entry, str):
                    entry = {"name": entry}
                required = entry.get("required", True)
                documents.append(
                    DocumentRequirement(
                        name=entry["name"],
                        status=DocumentStatus.REQUIRED if required else DocumentStatus.MISSING,
                        notes=entry.get("instructions"),
                    )
                )
        return documents
