"""HTTP routes for the directory API."""
