"""JSON API blueprints for LearnHub."""
