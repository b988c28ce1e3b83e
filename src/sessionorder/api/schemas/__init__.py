"""Request and response schemas for the SessionOrder API."""
