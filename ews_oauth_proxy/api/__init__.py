"""HTTP routes exposed by the proxy."""
