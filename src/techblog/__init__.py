"""TechBlog: blogging API and caching API client."""

__version__ = "0.1.0"
