"""Domain layer: model, diff engine, confirmation gate and apply executor."""
