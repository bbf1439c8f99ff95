"""Process-level plumbing that sits beside the dashboard core."""
