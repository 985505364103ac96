"""Building blocks of a reactive collection."""
