"""ORM model exports."""

from .category import Category, CategoryTranslation

__all__ = [
	"Category",
	"CategoryTranslation",
]
