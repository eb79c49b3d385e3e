"""UI adapters that sit on top of an engine session."""
