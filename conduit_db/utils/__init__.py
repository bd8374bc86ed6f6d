from .inflect import Pluralizer, default_pluralizer, plural, snake_case

__all__ = ["Pluralizer", "default_pluralizer", "plural", "snake_case"]
