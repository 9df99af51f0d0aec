"""Protocol components of the pickup system."""
