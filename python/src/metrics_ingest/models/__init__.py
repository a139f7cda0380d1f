"""Request, option and result models."""
