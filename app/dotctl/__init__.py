"""dotctl - Dependency-ordered, idempotent dotfiles module installer."""

__version__ = "0.1.0"
