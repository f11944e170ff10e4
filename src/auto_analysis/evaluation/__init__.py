"""Question evaluation providers (LLM-backed and offline) and the analysis result model."""
