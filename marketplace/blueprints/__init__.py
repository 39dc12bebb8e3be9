"""Blueprint packages for the marketplace JSON API."""
