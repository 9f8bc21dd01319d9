"""rdns - persistence core for dynamic domain registrations."""

__version__ = "0.1.0"
