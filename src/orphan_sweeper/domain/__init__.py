"""Domain layer: metadata records, key codec, repositories and the reconciliation engine."""
