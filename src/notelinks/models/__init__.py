"""Domain and database models for the notelinks engine."""
