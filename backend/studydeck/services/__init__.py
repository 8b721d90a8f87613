"""Services package for the flashcard engine."""
