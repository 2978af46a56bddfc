"""
Gallery models for artgallery application.

This module contains the dataclasses that represent rows of the
DuckDB metadata store: images and their classifications.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import PurePath


def utc_now() -> datetime:
    """Naive UTC timestamp, the form DuckDB TIMESTAMP columns round-trip."""
    return datetime.now(UTC).replace(tzinfo=None)


def title_from_filename(filename: str) -> str:
    """Default image title: the file name with its last extension removed."""
    name = PurePath(filename).name
    stem, dot, _extension = name.rpartition(".")
    if not dot or not stem:
        return name
    return stem


@dataclass(frozen=True)
class Category:
    """A named grouping images can belong to."""

    id: str
    name: str

    @classmethod
    def create_new(cls, name: str) -> "Category":
        return cls(id=str(uuid.uuid4()), name=name)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Tag:
    """A free-form label attached to images."""

    id: str
    name: str

    @classmethod
    def create_new(cls, name: str) -> "Tag":
        return cls(id=str(uuid.uuid4()), name=name)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


@dataclass
class ImageRecord:
    """
    Represents an image in the gallery.

    ``path`` is the stored object reference in the images bucket; the
    bytes themselves are never interpreted.
    """

    id: str
    title: str
    description: str
    path: str
    created_at: datetime
    updated_at: datetime
    categories: list[Category] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)

    @classmethod
    def create_new(
        cls,
        title: str,
        path: str,
        description: str = "",
        created_at: datetime | None = None,
    ) -> "ImageRecord":
        """
        Create a new ImageRecord with generated ID and current timestamp.

        Args:
            title: Display title
            path: Stored object reference
            description: Free text description
            created_at: Creation time (defaults to now)

        Returns:
            New ImageRecord instance
        """
        timestamp = created_at or utc_now()
        return cls(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            path=path,
            created_at=timestamp,
            updated_at=timestamp,
        )

    def to_dict(self) -> dict:
        """
        Convert ImageRecord to a plain dictionary for the UI layer.

        Returns:
            Dictionary representation of the image
        """
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "path": self.path,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "categories": [category.to_dict() for category in self.categories],
            "tags": [tag.to_dict() for tag in self.tags],
        }

    def validate(self) -> bool:
        """
        Validate the ImageRecord instance.

        Returns:
            True if valid, False otherwise
        """
        if not self.id or not self.path:
            return False

        if not self.title or not self.title.strip():
            return False

        return True

    @property
    def category_ids(self) -> list[str]:
        return [category.id for category in self.categories]

    @property
    def tag_ids(self) -> list[str]:
        return [tag.id for tag in self.tags]
