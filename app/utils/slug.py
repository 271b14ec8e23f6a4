"""Slug generation utilities."""
import re
from typing import Iterable


def slugify(text: str) -> str:
    """
    Convert text to URL-safe slug.

    Args:
        text: Input text to slugify

    Returns:
        URL-safe slug string

    Examples:
        >>> slugify("Emotion Coaching Basics")
        'emotion-coaching-basics'
        >>> slugify("KS2 Maths: Fractions")
        'ks2-maths-fractions'
    """
    # Convert to lowercase and strip whitespace
    slug = text.lower().strip()

    # Remove non-word characters (except spaces and hyphens)
    slug = re.sub(r"[^\w\s-]", "", slug)

    # Replace spaces and underscores with hyphens
    slug = re.sub(r"[\s_-]+", "-", slug)

    # Remove leading/trailing hyphens
    slug = re.sub(r"^-+|-+$", "", slug)

    return slug


def unique_among(base_slug: str, taken: Iterable[str]) -> str:
    """
    Return base_slug, or base_slug-2, base_slug-3, ... if already taken.

    Examples:
        >>> unique_among("intro", {"intro", "intro-2"})
        'intro-3'
    """
    taken = set(taken)
    if base_slug not in taken:
        return base_slug

    suffix = 2
    while f"{base_slug}-{suffix}" in taken:
        suffix += 1
    return f"{base_slug}-{suffix}"


async def generate_unique_slug(collection, base_slug: str) -> str:
    """
    Generate a unique slug with numeric suffix if needed.

    Checks if base_slug exists in the collection. If it does, tries
    base_slug-2, base_slug-3, etc. until a unique slug is found.

    Args:
        collection: MongoDB collection to check for uniqueness
        base_slug: Base slug to make unique

    Returns:
        Unique slug string
    """
    existing = await collection.find_one({"slug": base_slug})
    if not existing:
        return base_slug

    suffix = 2
    while True:
        candidate_slug = f"{base_slug}-{suffix}"

        existing = await collection.find_one({"slug": candidate_slug})
        if not existing:
            return candidate_slug

        suffix += 1
