"""HTTP client for the batch SQL execution endpoint."""
