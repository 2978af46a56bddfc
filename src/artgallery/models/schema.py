"""
Database schema definitions for artgallery application.

This module contains SQL schema definitions for the DuckDB metadata store.
Link tables carry no foreign keys; the metadata service removes link rows
itself before deleting an image, category or tag.
"""

IMAGES_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS images (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    path TEXT NOT NULL UNIQUE,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
);
"""

CATEGORIES_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);
"""

TAGS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS tags (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);
"""

IMAGE_CATEGORIES_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS image_categories (
    image_id TEXT NOT NULL,
    category_id TEXT NOT NULL,
    PRIMARY KEY (image_id, category_id)
);
"""

IMAGE_TAGS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS image_tags (
    image_id TEXT NOT NULL,
    tag_id TEXT NOT NULL,
    PRIMARY KEY (image_id, tag_id)
);
"""

TABLE_SCHEMAS = [
    IMAGES_TABLE_SCHEMA,
    CATEGORIES_TABLE_SCHEMA,
    TAGS_TABLE_SCHEMA,
    IMAGE_CATEGORIES_TABLE_SCHEMA,
    IMAGE_TAGS_TABLE_SCHEMA,
]

INDEX_STATEMENTS = [
    "CREATE INDEX IF NOT EXISTS idx_images_created_at ON images(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_image_categories_category ON image_categories(category_id);",
    "CREATE INDEX IF NOT EXISTS idx_image_tags_tag ON image_tags(tag_id);",
]

# Table name -> columns that must exist
REQUIRED_COLUMNS: dict[str, set[str]] = {
    "images": {"id", "title", "description", "path", "created_at", "updated_at"},
    "categories": {"id", "name"},
    "tags": {"id", "name"},
    "image_categories": {"image_id", "category_id"},
    "image_tags": {"image_id", "tag_id"},
}


def get_schema_statements() -> list[str]:
    """
    Get all database schema creation statements.

    Returns:
        List of SQL statements to create tables and indexes
    """
    return TABLE_SCHEMAS + INDEX_STATEMENTS


def validate_schema_compatibility() -> bool:
    """
    Check that every required column appears in the table definitions.

    Returns:
        True if schema is compatible, False otherwise
    """
    schema_text = "\n".join(TABLE_SCHEMAS).lower()

    for table, columns in REQUIRED_COLUMNS.items():
        if f"create table if not exists {table} (" not in schema_text:
            return False
        for column in columns:
            if column not in schema_text:
                return False

    return True
