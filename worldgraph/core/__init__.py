"""Core building blocks: storage, providers, oracle, safety, terrain and directions."""
