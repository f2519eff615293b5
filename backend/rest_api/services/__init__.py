"""
Services module for business logic.

- domain/: Application services (game store, webhook translation)
"""
