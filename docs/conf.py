# Configuration file for the Sphinx documentation builder.
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import sys
import tomllib
from pathlib import Path

# Add the project root to the path so Sphinx can find the app package
sys.path.insert(0, str(Path(__file__).parent.parent))

# -- Project information -----------------------------------------------------

project = "SB3 Fetch"
author = "SB3 Fetch contributors"

# Read version from pyproject.toml (single source of truth)
_pyproject = Path(__file__).parent.parent / "pyproject.toml"
with open(_pyproject, "rb") as f:
    _data = tomllib.load(f)
release = _data["project"]["version"]
version = release

# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "sphinx.ext.intersphinx",
    "sphinx_autodoc_typehints",
    "myst_parser",
]

source_suffix = {
    ".rst": "restructuredtext",
    ".md": "markdown",
}

exclude_patterns = ["_build", "Thumbs.db", ".DS_Store"]
master_doc = "index"

myst_enable_extensions = ["colon_fence", "deflist"]
myst_heading_anchors = 3

# -- HTML output options -----------------------------------------------------

html_theme = "furo"
html_theme_options = {
    "light_css_variables": {
        "color-brand-primary": "#855cd6",  # Scratch purple
        "color-brand-content": "#855cd6",
    },
    "dark_css_variables": {
        "color-brand-primary": "#a383e8",
        "color-brand-content": "#a383e8",
    },
    "navigation_with_keys": True,
}

# -- Autodoc configuration ---------------------------------------------------

autodoc_default_options = {
    "members": True,
    "member-order": "bysource",
    "undoc-members": True,
}

autodoc_typehints = "description"

# NumPy-style "Parameters / Returns / Raises" sections are used throughout.
napoleon_google_docstring = False
napoleon_numpy_docstring = True
napoleon_use_rtype = True

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "httpx": ("https://www.python-httpx.org", None),
}
