"""Seed the default marketplace category taxonomy."""

from typing import Dict, List, Optional, Tuple

import click
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.schemas.category import CategoryCreate, CategoryResponse, CategoryTranslationCreate
from app.services.categories import (
    create_category,
    generate_slug,
    get_category_by_slug,
    get_hierarchy_tree,
)
from app.services.category_hierarchy import flatten_hierarchy_tree


DEFAULT_TAXONOMY: Dict[str, List[str]] = {
    "Vehicles": ["Cars", "Motorcycles", "Trucks & Vans", "Spare Parts"],
    "Real Estate": ["Apartments", "Houses", "Land", "Commercial Property"],
    "Electronics": ["Phones & Tablets", "Computers", "TV & Audio", "Cameras"],
    "Home & Garden": ["Furniture", "Appliances", "Garden & Outdoor"],
    "Jobs": ["Full-time", "Part-time", "Freelance"],
    "Services": ["Repairs", "Moving", "Lessons & Tutoring"],
}


def _ensure_category(
    db: Session,
    name: str,
    language: str,
    display_order: int,
    parent: Optional[CategoryResponse] = None,
) -> Tuple[CategoryResponse, bool]:
    slug = generate_slug(name)
    if parent is not None:
        slug = f"{parent.slug}-{slug}"

    existing = get_category_by_slug(db, slug)
    if existing is not None:
        return existing, False

    category = create_category(
        db,
        CategoryCreate(
            slug=slug,
            parent_id=parent.id if parent is not None else None,
            display_order=display_order,
            translations=[CategoryTranslationCreate(language=language, name=name)],
        ),
    )
    return CategoryResponse.model_validate(category), True


def seed_taxonomy(
    db: Session,
    taxonomy: Dict[str, List[str]] = DEFAULT_TAXONOMY,
    language: str = "en",
) -> Tuple[int, int]:
    """Create missing categories of ``taxonomy``; return (created, skipped) counts."""
    created = skipped = 0

    for root_order, (root_name, children) in enumerate(taxonomy.items(), start=1):
        root, was_created = _ensure_category(db, root_name, language, root_order)
        if was_created:
            created += 1
            click.echo(f"  Created category: {root.slug}")
        else:
            skipped += 1
            click.echo(f"  Category '{root.slug}' already exists, skipping")

        for child_order, child_name in enumerate(children, start=1):
            child, was_created = _ensure_category(db, child_name, language, child_order, parent=root)
            if was_created:
                created += 1
                click.echo(f"    Created category: {child.slug}")
            else:
                skipped += 1

    return created, skipped


def _echo_tree(db: Session) -> None:
    roots = get_hierarchy_tree(db)
    depth_by_id = {root.id: 0 for root in roots}
    for node in flatten_hierarchy_tree(roots):
        for child in node.children:
            depth_by_id[child.id] = depth_by_id[node.id] + 1
        name = node.translations[0].name if node.translations else node.slug
        click.echo(f"{'  ' * depth_by_id[node.id]}- {name} ({node.slug})")


@click.command()
@click.option("--language", default="en", show_default=True, help="Language of the seeded names.")
@click.option("--show-tree/--no-show-tree", default=True, show_default=True)
def seed_categories(language: str, show_tree: bool) -> None:
    """Seed the category tree with the default marketplace taxonomy."""
    click.echo("Seeding categories...")

    db = SessionLocal()
    try:
        created, skipped = seed_taxonomy(db, DEFAULT_TAXONOMY, language=language)
        click.echo(f"Categories seeded: {created} created, {skipped} skipped")
        if show_tree:
            _echo_tree(db)
    except Exception as e:
        click.echo(f"Error seeding categories: {e}", err=True)
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_categories()
