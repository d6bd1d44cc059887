"""Expression IR for lazy source pipelines."""
