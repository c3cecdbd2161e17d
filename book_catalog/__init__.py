"""Book Catalog service - Backend.

HTTP JSON API for a small book catalog:
- Books and genres (CRUD, title search, pagination).
- Email/password accounts with stateless JWT bearer tokens.

Every response body is an envelope: {"success": bool, "message": str, "data"?: ...}.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
