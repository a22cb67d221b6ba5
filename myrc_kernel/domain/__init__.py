"""Pure domain values for the myRC kernel."""
