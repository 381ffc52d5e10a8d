"""Discovery, extraction, validation and orchestration."""
