"""
Render a repository's history, files and refs to static HTML and Atom feeds,
updating the output incrementally as new commits arrive.
"""

from .config import SiteConfig
from .site import BuildReport, build_site

__version__ = "0.1.0"

__all__ = ["SiteConfig", "BuildReport", "build_site", "__version__"]
