"""Book collaborators and in-memory stores."""
