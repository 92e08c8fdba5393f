"""HTTP adapter over the coursework engine."""
