"""
Recipe Factory - Recipe Harvester

Discovers recipe files on disk and reads their descriptive header.

Discovery is best-effort: a file that cannot be read is logged and skipped.
Only the top-level fields are read; the `steps` array is scanned past
without building anything from it.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from pydantic import ValidationError

from recipe_factory.engine.context import RecipeDescriptor
from recipe_factory.engine.reader import read_header
from recipe_factory.errors import RecipeError
from recipe_factory.models import RecipeMetadata

logger = logging.getLogger(__name__)


class RecipeHarvester:
    """
    Finds `*.recipe.json` files and turns them into RecipeDescriptors.

    Header keys are matched case-insensitively:
    name, displayName, description, author, website, version, tags,
    issetuprecipe, requireNewScope
    """

    PATTERN = "*.recipe.json"

    # header key (lower case) -> RecipeMetadata field
    HEADER_FIELDS: Dict[str, str] = {
        "name": "name",
        "displayname": "display_name",
        "description": "description",
        "author": "author",
        "website": "website",
        "version": "version",
        "tags": "tags",
        "issetuprecipe": "is_setup_recipe",
        "requirenewscope": "require_new_scope",
    }

    def __init__(self, recursive: bool = False):
        """
        Initialize harvester.

        Args:
            recursive: Also search sub-directories
        """
        self.recursive = recursive
        self.logger = logging.getLogger(__name__)

    def harvest(self, path: str | Path) -> List[RecipeDescriptor]:
        """
        Harvest all recipes below a directory.

        Args:
            path: Directory to search

        Returns:
            Descriptors sorted by file path
        """
        root = Path(path)
        if not root.is_dir():
            self.logger.warning(f"Recipe folder not found: {root}")
            return []

        files = root.rglob(self.PATTERN) if self.recursive else root.glob(self.PATTERN)
        descriptors: List[RecipeDescriptor] = []

        for file_path in sorted(files):
            descriptor = self.harvest_file(file_path)
            if descriptor is not None:
                descriptors.append(descriptor)

        self.logger.info(f"Harvested {len(descriptors)} recipes from {root}")
        return descriptors

    def harvest_file(self, file_path: str | Path) -> Optional[RecipeDescriptor]:
        """Read one recipe file; None when it is not a usable recipe."""
        file_path = Path(file_path)
        try:
            with open(file_path, "rb") as stream:
                header = read_header(stream)
            metadata = self._to_metadata(header, file_path)
        except (RecipeError, OSError, ValidationError) as e:
            self.logger.warning(f"Skipping invalid recipe file {file_path}: {e}")
            return None

        return RecipeDescriptor.from_file(
            file_path,
            require_new_scope=metadata.require_new_scope,
            metadata=metadata,
        )

    def find(self, path: str | Path, name: str) -> Optional[RecipeDescriptor]:
        """Find a harvested recipe by name (case-insensitive)."""
        wanted = name.casefold()
        for descriptor in self.harvest(path):
            if descriptor.name.casefold() == wanted:
                return descriptor
        return None

    def _to_metadata(self, header: Dict[str, Any], file_path: Path) -> RecipeMetadata:
        values: Dict[str, Any] = {}
        for key, value in header.items():
            field = self.HEADER_FIELDS.get(key.lower())
            if field is not None and value is not None:
                values[field] = value

        if not isinstance(values.get("name"), str) or not values["name"]:
            values["name"] = file_path.name.split(".")[0]
        if isinstance(values.get("tags"), str):
            values["tags"] = [values["tags"]]

        return RecipeMetadata(**values)
