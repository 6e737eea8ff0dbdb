"""Infrastructure layer: storage substrates and tier backends."""
