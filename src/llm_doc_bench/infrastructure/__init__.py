"""Infrastructure Layer: model clients, persistence and notifications."""
