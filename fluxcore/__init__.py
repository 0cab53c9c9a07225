"""Image references, policies, jobs, HTTP helpers and a cache-backed registry client."""

__version__ = "0.1.0"

__all__ = [
    "accept",
    "apierror",
    "cache",
    "client",
    "credentials",
    "errors",
    "github",
    "image",
    "job",
    "middleware",
    "policy",
    "registry",
    "templates",
    "transport",
    "warming",
]