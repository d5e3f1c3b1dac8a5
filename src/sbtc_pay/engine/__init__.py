"""Payment engine — models, repositories, services and lifecycle."""
